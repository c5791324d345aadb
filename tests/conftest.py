"""
Shared fixtures: synthetic Tesseract output and fake recognition workers.
"""

import sys
import threading
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

WORD_WIDTH = 40
WORD_GAP = 10
LINE_HEIGHT = 12
LINE_PITCH = 20


def tesseract_data(words):
    """
    Build an ``image_to_data`` style dict.

    Args:
        words: Iterable of (block, par, line, text, left, top[, conf])
    """
    keys = ["level", "page_num", "block_num", "par_num", "line_num", "word_num",
            "left", "top", "width", "height", "conf", "text"]
    data = {k: [] for k in keys}

    def add(level, block, par, line, word, left, top, width, height, conf, text):
        for key, value in zip(keys, [level, 1, block, par, line, word,
                                     left, top, width, height, conf, text]):
            data[key].append(value)

    add(1, 0, 0, 0, 0, 0, 0, 1000, 1000, -1, "")  # page row
    for i, word in enumerate(words):
        block, par, line, text, left, top = word[:6]
        conf = word[6] if len(word) > 6 else 90.0
        add(5, block, par, line, i + 1, left, top, WORD_WIDTH, LINE_HEIGHT, conf, text)
    return data


def text_to_data(text, top=10):
    """
    Lay out plain text as Tesseract rows: blank lines separate blocks, every
    other line is its own line in a single paragraph.
    """
    words = []
    block = 1
    line_num = 0
    y = top
    for raw_line in text.split("\n"):
        if not raw_line.strip():
            block += 1
            line_num = 0
            y += LINE_PITCH
            continue
        line_num += 1
        x = 10
        for token in raw_line.split():
            words.append((block, 1, line_num, token, x, y))
            x += WORD_WIDTH + WORD_GAP
        y += LINE_PITCH
    return tesseract_data(words)


def recognition_from_text(text, width=800, height=1000):
    from docstruct.utils.ocr_text import build_recognition_result
    return build_recognition_result(text_to_data(text), width, height)


class FakeWorker:
    """Recognition worker driven by a script ``image -> text``."""

    def __init__(self, worker_id, script, gate=None, started=None,
                 load_error=None, recognize_error=None, terminate_error=None,
                 terminate_gate=None, terminating=None):
        self.worker_id = worker_id
        self.script = script
        self.gate = gate
        self.started = started
        self.load_error = load_error
        self.recognize_error = recognize_error
        self.terminate_error = terminate_error
        self.terminate_gate = terminate_gate
        self.terminating = terminating
        self.loaded = False
        self.terminated = False
        self.calls = []

    def load(self):
        if self.load_error:
            raise self.load_error
        self.loaded = True

    def recognize(self, image, on_progress=None):
        if self.terminated:
            raise RuntimeError(f"terminated worker {self.worker_id} reused")
        self.calls.append(image)
        if self.started is not None:
            self.started.set()
        if self.gate is not None:
            self.gate.wait(5)
        if self.recognize_error:
            error, self.recognize_error = self.recognize_error, None
            raise error
        if on_progress is not None:
            on_progress(0.5)
        return recognition_from_text(self.script(image))

    def terminate(self):
        if self.terminating is not None:
            self.terminating.set()
        if self.terminate_gate is not None:
            self.terminate_gate.wait(5)
        self.terminated = True
        if self.terminate_error:
            raise self.terminate_error


class FakeWorkerFactory:
    """``(worker_id, options) -> FakeWorker`` that remembers what it built."""

    def __init__(self, script=lambda image: "Hello world", **worker_kwargs):
        self.script = script
        self.worker_kwargs = worker_kwargs
        self.workers = []
        self.options_seen = []

    def __call__(self, worker_id, options=None):
        self.options_seen.append(options)
        worker = FakeWorker(worker_id, self.script, **self.worker_kwargs)
        self.workers.append(worker)
        return worker

    @property
    def calls(self):
        return [call for w in self.workers for call in w.calls]


@pytest.fixture
def make_data():
    return tesseract_data


@pytest.fixture
def make_recognition():
    return recognition_from_text


@pytest.fixture
def fake_factory():
    return FakeWorkerFactory


@pytest.fixture
def blank_image():
    return np.full((40, 60, 3), 255, dtype=np.uint8)


@pytest.fixture
def gate():
    """(started, release) events for holding a worker mid-recognition."""
    started = threading.Event()
    release = threading.Event()
    yield started, release
    release.set()
