import struct

import numpy as np
import pytest

from lenet5.network import (
    LeNet5,
    normalize_image,
    relu,
    relu_grad,
    softmax_error,
)


def make_image(seed):
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(28, 28), dtype=np.uint8)


def test_relu_clamps_negatives():
    result = relu(np.array([-2.0, 0.0, 3.5]))
    assert np.array_equal(result, np.array([0.0, 0.0, 3.5]))


def test_relu_scalar():
    assert relu(4.0) == 4.0
    assert relu(-1.0) == 0.0


def test_relu_grad_values():
    assert np.array_equal(relu_grad(np.array([-1.0, 0.0, 2.0])), np.array([0.0, 0.0, 1.0]))
    assert relu_grad(3.0) == 1.0
    assert relu_grad(0.0) == 0.0


def test_normalize_image_padding_and_statistics():
    layer = normalize_image(make_image(1))
    assert layer.shape == (1, 32, 32)
    interior = layer[0, 2:30, 2:30]
    assert np.isclose(interior.mean(), 0.0)
    assert np.isclose(interior.std(), 1.0)
    border = layer.copy()
    border[0, 2:30, 2:30] = 0.0
    assert not border.any()


def test_normalize_image_rejects_wrong_shape():
    with pytest.raises(ValueError):
        normalize_image(np.zeros((27, 28), dtype=np.uint8))


def test_softmax_error_sums_to_zero_and_favours_label():
    output = np.array([0.3, 1.2, 0.0, 2.5, 0.7, 0.1, 0.9, 0.4, 0.2, 1.1])
    error = softmax_error(output, 4, 10)
    assert error.shape == (10,)
    assert np.isclose(error.sum(), 0.0)
    assert error[4] > 0


def test_softmax_error_uses_only_count_outputs():
    output = np.array([0.3, 1.2, 0.0, 2.5, 0.7, 0.1, 0.9, 0.4, 0.2, 1.1])
    error = softmax_error(output, 1, 3)
    assert error.shape == (3,)
    assert np.allclose(error, softmax_error(output[:3], 1, 3))


def test_softmax_error_rejects_bad_label():
    with pytest.raises(ValueError):
        softmax_error(np.zeros(10), 10, 10)
    with pytest.raises(ValueError):
        softmax_error(np.zeros(10), 0, 11)


def test_zero_model_predicts_first_index():
    model = LeNet5.zeros()
    assert model.predict(make_image(2)) == 0


def test_predict_respects_count():
    model = LeNet5.zeros()
    model.bias5_6[9] = 1.0
    model.bias5_6[3] = 0.5
    image = make_image(3)
    assert model.predict(image) == 9
    assert model.predict(image, 5) == 3
    assert model.predict(image, 3) == 0


def test_predict_rejects_bad_count():
    model = LeNet5.zeros()
    with pytest.raises(ValueError):
        model.predict(make_image(4), 0)
    with pytest.raises(ValueError):
        model.predict(make_image(4), 11)


def test_initial_bounds_and_zero_biases():
    model = LeNet5.initial(7)
    assert np.all(np.abs(model.weight0_1) <= np.sqrt(6.0 / (25 * (1 + 6))))
    assert np.all(np.abs(model.weight5_6) <= np.sqrt(6.0 / (120 + 10)))
    for bias in (model.bias0_1, model.bias2_3, model.bias4_5, model.bias5_6):
        assert not bias.any()
    assert np.abs(model.weight2_3).max() > 0


def test_initial_is_reproducible_with_seed():
    assert LeNet5.initial(11).to_bytes() == LeNet5.initial(11).to_bytes()
    assert LeNet5.initial(11).to_bytes() != LeNet5.initial(12).to_bytes()


def test_bytes_round_trip():
    model = LeNet5.initial(5)
    restored = LeNet5.from_bytes(model.to_bytes())
    assert restored.to_bytes() == model.to_bytes()
    assert np.array_equal(restored.weight4_5, model.weight4_5)


def test_bytes_layout_order():
    model = LeNet5.initial(6)
    model.bias5_6[-1] = 0.25
    data = model.to_bytes()
    assert struct.unpack("<d", data[:8])[0] == model.weight0_1[0, 0, 0, 0]
    assert struct.unpack("<d", data[-8:])[0] == 0.25


def test_from_bytes_rejects_wrong_size():
    with pytest.raises(ValueError):
        LeNet5.from_bytes(b"\x00" * 3)


def test_train_learns_repeated_label():
    model = LeNet5.initial(0)
    image = make_image(8)
    for _ in range(10):
        model.train(image, 7)
    assert model.predict(image) == 7


def test_train_rejects_bad_label():
    model = LeNet5.zeros()
    with pytest.raises(ValueError):
        model.train(make_image(9), 10)


def test_train_batch_of_one_matches_train():
    single = LeNet5.initial(1)
    batch = LeNet5.from_bytes(single.to_bytes())
    image = make_image(10)
    single.train(image, 4)
    batch.train_batch([image], [4])
    assert np.allclose(
        np.frombuffer(single.to_bytes()), np.frombuffer(batch.to_bytes())
    )


def test_train_batch_of_duplicates_matches_train():
    single = LeNet5.initial(2)
    batch = LeNet5.from_bytes(single.to_bytes())
    image = make_image(12)
    single.train(image, 2)
    batch.train_batch([image, image], [2, 2])
    assert np.allclose(
        np.frombuffer(single.to_bytes()), np.frombuffer(batch.to_bytes())
    )


def test_train_batch_changes_parameters():
    model = LeNet5.initial(3)
    before = model.to_bytes()
    model.train_batch([make_image(13), make_image(14)], [1, 5])
    assert model.to_bytes() != before
    assert model.bias5_6[1] > 0 or model.bias5_6[5] > 0


def test_train_batch_rejects_empty_and_mismatched():
    model = LeNet5.zeros()
    with pytest.raises(ValueError):
        model.train_batch([], [])
    with pytest.raises(ValueError):
        model.train_batch([make_image(15)], [1, 2])