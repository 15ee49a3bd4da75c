# lenet5

A compact LeNet-5 convolutional neural network for recognising handwritten
digits in 28×28 greyscale images, such as those in the MNIST dataset. It is
built on NumPy.

The network has three 5×5 convolution layers and two 2×2 max-pooling layers,
followed by a fully connected output layer. It uses ReLU activations and a
softmax loss, and trains with plain gradient descent at a fixed learning rate
of 0.5. Each image is standardised to zero mean and unit variance, then
zero-padded to 32×32 before it enters the network.

## Installation

```
pip install .
```

To install the test dependencies as well:

```
pip install ".[test]"
```

## Using the library

```python
import numpy as np

from lenet5.network import LeNet5
from lenet5.data import read_idx, iter_csv, render_image, save_model, load_model

# A freshly initialised network: scaled uniform weights, zero biases.
# initial() takes a numpy Generator, a seed, or None.
model = LeNet5.initial(np.random.default_rng(0))

# Read images and labels from a pair of IDX files
images, labels = read_idx("train-images-idx3-ubyte", "train-labels-idx1-ubyte", 60000)

# One gradient step on a single image, or averaged over a batch
model.train(images[0], labels[0])
model.train_batch(images[:300], labels[:300])

# Predict a digit: the index of the largest of the first 10 outputs
digit = model.predict(images[0], 10)

# Save the parameters to a file, then read them back
save_model(model, "model.dat")
model = load_model("model.dat")

# Read labelled images from a CSV file: a label, then 784 pixel values per row
for label, image in iter_csv("mnist_test.csv", 28):
    print(label, model.predict(image, 10))
    print(render_image(image, 28))
```

### `lenet5.network`

- `LeNet5` holds the weights and biases as NumPy arrays. `LeNet5.zeros()`
  makes a network with every parameter zero; `LeNet5.initial(rng)` makes a
  freshly initialised one.
- `train(image, label)` and `train_batch(images, labels)` update the network
  in place. `train_batch` raises `ValueError` for an empty batch or when the
  numbers of images and labels differ.
- `predict(image, count)` returns the predicted class among the first
  `count` outputs (1 to 10).
- `to_bytes()` and `LeNet5.from_bytes(data)` convert all parameters to and
  from consecutive little-endian 64-bit floats; `from_bytes` raises
  `ValueError` when the buffer has the wrong length.
- `relu`, `relu_grad`, `normalize_image` and `softmax_error` are the
  building blocks the network uses.

### `lenet5.data`

- `read_idx(image_file, label_file, count)` returns a `(count, 28, 28)`
  `uint8` image array and a `uint8` label array. Headers are skipped
  unchecked; data missing from a short file reads as zero.
- `parse_csv_row(line, n)` turns `label,p0,p1,...` into a label and an
  `n`×`n` image, raising `ValueError` when the line has no comma or too few
  values.
- `iter_csv(path, n)` yields `(label, image)` for each row, skipping a first
  line that does not start with a digit.
- `render_image(image, n)` draws an image as text with the shades
  ` .*:xVX#`.
- `save_model(model, path)` and `load_model(path)` store a model in the
  `to_bytes` format.

## Command line

Installing the package provides a `lenet5` command with two subcommands.

```
lenet5 evaluate [--csv FILE] [--model FILE] [--count N] [--show-failures]
```

Loads a model (default `model.dat`), classifies the first `--count` rows
(default 1000) of a CSV file (default `mnist_test-1.csv`) and prints
`correct/count`. With `--show-failures` each misclassified image is printed
with its label and prediction. Running `lenet5` with no subcommand does the
same as `lenet5 evaluate`.

```
lenet5 train [--train-images FILE] [--train-labels FILE]
             [--test-images FILE] [--test-labels FILE]
             [--train-count N] [--test-count N]
             [--batch-size N] [--model FILE] [--seed N]
```

Reads MNIST IDX files (by default `train-images-idx3-ubyte`,
`train-labels-idx1-ubyte`, `t10k-images-idx3-ubyte` and
`t10k-labels-idx1-ubyte`; 60000 training and 10000 test images), loads the
model file or, if that fails, initialises a new network from `--seed`,
trains in batches of 300 by default with a progress bar, tests, prints the
number correct and the time taken, and writes the model back.

Both commands exit with status 1 after printing an error when their input
files cannot be read. To see every option, run:

```
lenet5 --help
```

## Limitations

Training runs on one core, one image at a time within a batch. Model files
hold only raw parameters with no header, so they carry no check of the
network's shape beyond their length.

## Running the tests

```
pytest
```