"""Reading digit datasets in IDX and CSV form, and storing models on disk."""

from __future__ import annotations

import re
from pathlib import Path

import numpy as np

from lenet5.network import IMAGE_SIZE, LeNet5

IDX_IMAGE_HEADER = 16
IDX_LABEL_HEADER = 8

_SHADES = " .*:xVX#"
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _atoi(text):
    """Leading integer of ``text``, or 0 when it does not start with one."""
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def _read_exact(path, offset, size):
    with open(path, "rb") as stream:
        stream.seek(offset)
        data = stream.read(size)
    return data + bytes(size - len(data))


def read_idx(image_file, label_file, count):
    """Read ``count`` images and labels from a pair of IDX files.

    Headers are skipped without being checked. Data missing from a short
    file reads as zero.
    """
    if count < 0:
        raise ValueError(f"count must not be negative, got {count}")
    image_bytes = count * IMAGE_SIZE * IMAGE_SIZE
    images_raw = _read_exact(image_file, IDX_IMAGE_HEADER, image_bytes)
    labels_raw = _read_exact(label_file, IDX_LABEL_HEADER, count)
    images = np.frombuffer(images_raw, dtype=np.uint8).reshape(
        count, IMAGE_SIZE, IMAGE_SIZE
    ).copy()
    labels = np.frombuffer(labels_raw, dtype=np.uint8).copy()
    return images, labels


def parse_csv_row(line, n):
    """Parse ``label,p0,p1,...`` into the label and an ``n`` x ``n`` uint8 image."""
    label = _atoi(line)
    comma = line.find(",")
    if comma < 0:
        raise ValueError("File format error.")
    rest = line[comma + 1:]
    total = n * n
    pixels = []
    for index in range(total):
        pixels.append(_atoi(rest) & 0xFF)
        comma = rest.find(",")
        if comma < 0:
            if index < total - 1:
                raise ValueError("Not enough digits in line found.")
        else:
            rest = rest[comma + 1:]
    return label, np.array(pixels, dtype=np.uint8).reshape(n, n)


def iter_csv(path, n):
    """Yield ``(label, image)`` for every row of a CSV file, skipping a header line."""
    with open(path, "r") as stream:
        first = stream.readline()
        if first and "0" <= first[0] <= "9":
            yield parse_csv_row(first, n)
        for line in stream:
            yield parse_csv_row(line, n)


def render_image(image, n):
    """Draw the top-left ``n`` x ``n`` pixels of an image as text, one row per line."""
    pixels = np.asarray(image)
    rows = (
        "".join(_SHADES[min(int(pixels[r, c]) // 32, len(_SHADES) - 1)] for c in range(n))
        for r in range(n)
    )
    return "".join("\n" + row for row in rows) + "\n"


def save_model(model, path):
    """Write a model's parameters to ``path``."""
    Path(path).write_bytes(model.to_bytes())


def load_model(path):
    """Read a model written by :func:`save_model`."""
    return LeNet5.from_bytes(Path(path).read_bytes())