"""Command line for training, testing and evaluating the network."""

from __future__ import annotations

import argparse
import sys
import time

from lenet5.data import iter_csv, load_model, read_idx, render_image, save_model
from lenet5.network import IMAGE_SIZE, OUTPUT, LeNet5

FILE_TRAIN_IMAGE = "train-images-idx3-ubyte"
FILE_TRAIN_LABEL = "train-labels-idx1-ubyte"
FILE_TEST_IMAGE = "t10k-images-idx3-ubyte"
FILE_TEST_LABEL = "t10k-labels-idx1-ubyte"
LENET_FILE = "model.dat"
CSV_FILE = "mnist_test-1.csv"
COUNT_TRAIN = 60000
COUNT_TEST = 10000
COUNT_EVALUATE = 1000
BATCH_SIZE = 300
BAR_WIDTH = 50


def progress_bar(progress, total):
    """A one-line progress bar that redraws over itself."""
    ratio = progress / total
    filled = int(BAR_WIDTH * ratio)
    return "\r[" + "=" * filled + " " * (BAR_WIDTH - filled) + f"] {int(ratio * 100)}%"


def _write(out, text):
    out.write(text)
    out.flush()


def training(model, images, labels, batch_size, out=None):
    """Train over the data in consecutive batches; a trailing partial batch is dropped."""
    out = sys.stdout if out is None else out
    total = len(images)
    _write(out, f"Training with batch size {batch_size}:\n")
    percent = 0
    for start in range(0, total - batch_size + 1, batch_size):
        model.train_batch(
            images[start:start + batch_size], labels[start:start + batch_size]
        )
        if start * 100 // total > percent:
            _write(out, progress_bar(start, total))
    _write(out, "\n")


def testing(model, images, labels, out=None):
    """Count how many images the model labels correctly."""
    out = sys.stdout if out is None else out
    total = len(images)
    _write(out, "Testing:\n")
    right = 0
    for index, (image, label) in enumerate(zip(images, labels)):
        right += int(label) == model.predict(image, OUTPUT)
        _write(out, progress_bar(index, total))
    _write(out, "\n")
    return right


def _evaluate(args):
    try:
        model = load_model(args.model)
    except (OSError, ValueError) as error:
        print(f"Error loading model: {error}", file=sys.stderr)
        return 1
    try:
        rows = iter_csv(args.csv, IMAGE_SIZE)
        correct = 0
        for _ in range(args.count):
            row = next(rows, None)
            if row is None:
                print("Error reading line from csv.", file=sys.stderr)
                return 1
            label, image = row
            if label < 0:
                print("Error reading line from csv.", file=sys.stderr)
                return 1
            prediction = model.predict(image, OUTPUT)
            correct += prediction == label
            if args.show_failures and prediction != label:
                print(f"Testing digit: {label}. Model predicts: {prediction}.")
                print(render_image(image, IMAGE_SIZE), end="")
    except OSError:
        print("Error opening csv file.", file=sys.stderr)
        return 1
    except ValueError as error:
        print(error, file=sys.stderr)
        return 1
    print(f"{correct}/{args.count}")
    return 0


def _train(args):
    try:
        train_images, train_labels = read_idx(
            args.train_images, args.train_labels, args.train_count
        )
        test_images, test_labels = read_idx(
            args.test_images, args.test_labels, args.test_count
        )
    except OSError:
        print(
            "ERROR!!!\nDataset File Not Find!Please Copy Dataset to the Folder "
            "Included the exe"
        )
        return 1
    try:
        model = load_model(args.model)
    except (OSError, ValueError):
        model = LeNet5.initial(args.seed)
    start = time.perf_counter()
    training(model, train_images, train_labels, args.batch_size)
    right = testing(model, test_images, test_labels)
    print(f"{right}/{args.test_count}")
    print(f"Time: {time.perf_counter() - start:.2f} seconds")
    save_model(model, args.model)
    return 0


def _parser():
    parser = argparse.ArgumentParser(
        prog="lenet5", description="Train and run a LeNet-5 digit classifier."
    )
    commands = parser.add_subparsers(dest="command")

    evaluate = commands.add_parser("evaluate", help="classify rows of a CSV file")
    evaluate.add_argument("--csv", default=CSV_FILE)
    evaluate.add_argument("--model", default=LENET_FILE)
    evaluate.add_argument("--count", type=int, default=COUNT_EVALUATE)
    evaluate.add_argument("--show-failures", action="store_true")
    evaluate.set_defaults(handler=_evaluate)

    train = commands.add_parser("train", help="train on IDX files, then test")
    train.add_argument("--train-images", default=FILE_TRAIN_IMAGE)
    train.add_argument("--train-labels", default=FILE_TRAIN_LABEL)
    train.add_argument("--test-images", default=FILE_TEST_IMAGE)
    train.add_argument("--test-labels", default=FILE_TEST_LABEL)
    train.add_argument("--train-count", type=int, default=COUNT_TRAIN)
    train.add_argument("--test-count", type=int, default=COUNT_TEST)
    train.add_argument("--batch-size", type=int, default=BATCH_SIZE)
    train.add_argument("--model", default=LENET_FILE)
    train.add_argument("--seed", type=int, default=None)
    train.set_defaults(handler=_train)
    return parser


def main(argv=None):
    """Run the command line; with no command, evaluate the default CSV file."""
    argv = sys.argv[1:] if argv is None else list(argv)
    parser = _parser()
    args = parser.parse_args(argv)
    if args.command is None:
        args = parser.parse_args(["evaluate", *argv])
    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())