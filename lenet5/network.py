"""LeNet-5 convolutional network for 28x28 greyscale digit images."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

LENGTH_KERNEL = 5

LENGTH_FEATURE0 = 32
LENGTH_FEATURE1 = LENGTH_FEATURE0 - LENGTH_KERNEL + 1
LENGTH_FEATURE2 = LENGTH_FEATURE1 >> 1
LENGTH_FEATURE3 = LENGTH_FEATURE2 - LENGTH_KERNEL + 1
LENGTH_FEATURE4 = LENGTH_FEATURE3 >> 1
LENGTH_FEATURE5 = LENGTH_FEATURE4 - LENGTH_KERNEL + 1

INPUT = 1
LAYER1 = 6
LAYER2 = 6
LAYER3 = 16
LAYER4 = 16
LAYER5 = 120
OUTPUT = 10

ALPHA = 0.5
PADDING = 2
IMAGE_SIZE = 28

_DTYPE = np.dtype("<f8")

_SHAPES = {
    "weight0_1": (INPUT, LAYER1, LENGTH_KERNEL, LENGTH_KERNEL),
    "weight2_3": (LAYER2, LAYER3, LENGTH_KERNEL, LENGTH_KERNEL),
    "weight4_5": (LAYER4, LAYER5, LENGTH_KERNEL, LENGTH_KERNEL),
    "weight5_6": (LAYER5 * LENGTH_FEATURE5 * LENGTH_FEATURE5, OUTPUT),
    "bias0_1": (LAYER1,),
    "bias2_3": (LAYER3,),
    "bias4_5": (LAYER5,),
    "bias5_6": (OUTPUT,),
}

_KERNEL_AREA = LENGTH_KERNEL * LENGTH_KERNEL

_FAN = {
    "weight0_1": _KERNEL_AREA * (INPUT + LAYER1),
    "weight2_3": _KERNEL_AREA * (LAYER2 + LAYER3),
    "weight4_5": _KERNEL_AREA * (LAYER4 + LAYER5),
    "weight5_6": LAYER5 + OUTPUT,
}


def relu(x):
    """Rectified linear activation."""
    return x * (x > 0)


def relu_grad(y):
    """Derivative of relu expressed in terms of its output."""
    if np.ndim(y) == 0:
        return float(y > 0)
    return (np.asarray(y) > 0).astype(np.float64)


def normalize_image(image):
    """Standardise a 28x28 image and place it, zero padded, in a 1x32x32 input layer."""
    pixels = np.asarray(image, dtype=np.float64)
    if pixels.shape != (IMAGE_SIZE, IMAGE_SIZE):
        raise ValueError(
            f"image must be {IMAGE_SIZE}x{IMAGE_SIZE}, got shape {pixels.shape}"
        )
    mean = pixels.mean()
    with np.errstate(divide="ignore", invalid="ignore"):
        std = np.sqrt((pixels * pixels).mean() - mean * mean)
        normalized = (pixels - mean) / std
    layer = np.zeros((INPUT, LENGTH_FEATURE0, LENGTH_FEATURE0))
    layer[0, PADDING:PADDING + IMAGE_SIZE, PADDING:PADDING + IMAGE_SIZE] = normalized
    return layer


def softmax_error(output, label, count):
    """Error signal of the softmax output for the first ``count`` outputs and a target label."""
    values = np.asarray(output, dtype=np.float64).reshape(-1)
    if not 1 <= count <= values.size:
        raise ValueError(f"count must be between 1 and {values.size}, got {count}")
    if not 0 <= label < count:
        raise ValueError(f"label must be between 0 and {count - 1}, got {label}")
    values = values[:count]
    probabilities = 1.0 / np.exp(values[None, :] - values[:, None]).sum(axis=1)
    inner = probabilities[label] - np.dot(probabilities, probabilities)
    target = np.zeros(count)
    target[label] = 1.0
    return probabilities * (target - probabilities - inner)


def _conv_forward(inputs, weight, bias):
    k = weight.shape[-1]
    windows = sliding_window_view(inputs, (k, k), axis=(1, 2))
    summed = np.einsum("xhwij,xyij->yhw", windows, weight)
    return relu(summed + bias[:, None, None])


def _conv_backward(inputs, out_error, weight):
    k = weight.shape[-1]
    padded = np.pad(out_error, ((0, 0), (k - 1, k - 1), (k - 1, k - 1)))
    windows = sliding_window_view(padded, (k, k), axis=(1, 2))
    in_error = np.einsum("yhwij,xyij->xhw", windows, weight[:, :, ::-1, ::-1])
    in_error *= relu_grad(inputs)
    bias_delta = out_error.sum(axis=(1, 2))
    height, width = out_error.shape[1:]
    input_windows = sliding_window_view(inputs, (height, width), axis=(1, 2))
    weight_delta = np.einsum("xabhw,yhw->xyab", input_windows, out_error)
    return in_error, weight_delta, bias_delta


def _pool_blocks(inputs):
    channels, height, width = inputs.shape
    blocks = (
        inputs.reshape(channels, height // 2, 2, width // 2, 2)
        .transpose(0, 1, 3, 2, 4)
        .reshape(channels, height // 2, width // 2, 4)
    )
    return blocks, np.argmax(blocks, axis=-1)


def _pool_forward(inputs):
    blocks, index = _pool_blocks(inputs)
    return np.take_along_axis(blocks, index[..., None], axis=-1)[..., 0]


def _pool_backward(inputs, out_error):
    blocks, index = _pool_blocks(inputs)
    grad = np.zeros_like(blocks)
    np.put_along_axis(grad, index[..., None], out_error[..., None], axis=-1)
    channels, height, width = inputs.shape
    return (
        grad.reshape(channels, height // 2, width // 2, 2, 2)
        .transpose(0, 1, 3, 2, 4)
        .reshape(channels, height, width)
    )


@dataclass(eq=False)
class LeNet5:
    """Weights and biases of the network."""

    weight0_1: np.ndarray
    weight2_3: np.ndarray
    weight4_5: np.ndarray
    weight5_6: np.ndarray
    bias0_1: np.ndarray
    bias2_3: np.ndarray
    bias4_5: np.ndarray
    bias5_6: np.ndarray

    def __post_init__(self):
        for name, shape in _SHAPES.items():
            array = np.array(getattr(self, name), dtype=np.float64)
            if array.shape != shape:
                raise ValueError(f"{name} must have shape {shape}, got {array.shape}")
            setattr(self, name, array)

    @classmethod
    def zeros(cls):
        """A network whose parameters are all zero."""
        return cls(**{name: np.zeros(shape) for name, shape in _SHAPES.items()})

    @classmethod
    def initial(cls, rng=None):
        """A freshly initialised network: scaled uniform weights, zero biases.

        ``rng`` may be a numpy Generator, a seed or None.
        """
        generator = np.random.default_rng(rng)
        model = cls.zeros()
        for name, fan in _FAN.items():
            scale = np.sqrt(6.0 / fan)
            setattr(model, name, generator.uniform(-1.0, 1.0, _SHAPES[name]) * scale)
        return model

    def _parameters(self):
        return tuple(getattr(self, name) for name in _SHAPES)

    def _forward(self, layer0):
        layer1 = _conv_forward(layer0, self.weight0_1, self.bias0_1)
        layer2 = _pool_forward(layer1)
        layer3 = _conv_forward(layer2, self.weight2_3, self.bias2_3)
        layer4 = _pool_forward(layer3)
        layer5 = _conv_forward(layer4, self.weight4_5, self.bias4_5)
        output = relu(layer5.reshape(-1) @ self.weight5_6 + self.bias5_6)
        return layer0, layer1, layer2, layer3, layer4, layer5, output

    def _gradient(self, image, label):
        layer0, layer1, layer2, layer3, layer4, layer5, output = self._forward(
            normalize_image(image)
        )
        out_error = softmax_error(output, label, OUTPUT)
        flat = layer5.reshape(-1)
        layer5_error = (self.weight5_6 @ out_error) * relu_grad(flat)
        weight5_6 = np.outer(flat, out_error)
        layer4_error, weight4_5, bias4_5 = _conv_backward(
            layer4, layer5_error.reshape(layer5.shape), self.weight4_5
        )
        layer3_error = _pool_backward(layer3, layer4_error)
        layer2_error, weight2_3, bias2_3 = _conv_backward(
            layer2, layer3_error, self.weight2_3
        )
        layer1_error = _pool_backward(layer1, layer2_error)
        _, weight0_1, bias0_1 = _conv_backward(layer0, layer1_error, self.weight0_1)
        return LeNet5(
            weight0_1, weight2_3, weight4_5, weight5_6,
            bias0_1, bias2_3, bias4_5, out_error.copy(),
        )

    def _apply(self, delta, scale):
        for parameter, change in zip(self._parameters(), delta._parameters()):
            parameter += scale * change

    def train(self, image, label):
        """Take one gradient step on a single labelled image."""
        self._apply(self._gradient(image, label), ALPHA)

    def train_batch(self, images, labels):
        """Take one gradient step averaged over a batch of labelled images."""
        images = list(images)
        labels = list(labels)
        if len(images) != len(labels):
            raise ValueError(
                f"got {len(images)} images but {len(labels)} labels"
            )
        if not images:
            raise ValueError("batch must not be empty")
        total = LeNet5.zeros()
        for image, label in zip(images, labels):
            total._apply(self._gradient(image, label), 1.0)
        self._apply(total, ALPHA / len(images))

    def predict(self, image, count=OUTPUT):
        """The index of the largest of the first ``count`` outputs for an image."""
        if not 1 <= count <= OUTPUT:
            raise ValueError(f"count must be between 1 and {OUTPUT}, got {count}")
        output = self._forward(normalize_image(image))[-1]
        return int(np.argmax(output[:count]))

    def to_bytes(self):
        """All parameters as consecutive little-endian float64 values."""
        return b"".join(p.astype(_DTYPE).tobytes() for p in self._parameters())

    @classmethod
    def from_bytes(cls, data):
        """Rebuild a network from the output of :meth:`to_bytes`."""
        sizes = [int(np.prod(shape)) for shape in _SHAPES.values()]
        expected = sum(sizes) * _DTYPE.itemsize
        if len(data) != expected:
            raise ValueError(f"expected {expected} bytes, got {len(data)}")
        values = np.frombuffer(data, dtype=_DTYPE).astype(np.float64)
        arrays = {}
        offset = 0
        for (name, shape), size in zip(_SHAPES.items(), sizes):
            arrays[name] = values[offset:offset + size].reshape(shape).copy()
            offset += size
        return cls(**arrays)