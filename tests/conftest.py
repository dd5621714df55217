import logging
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from postbuild.model.pipeline_options import PipelineOptions  # noqa: E402
from postbuild.pipeline.context import PipelineContext  # noqa: E402

FOOTNOTE_PAGE = """<!DOCTYPE html>
<html>
<head><title>Notes</title></head>
<body>
<main>
<p>First claim<sup><a href="#1">1</a></sup> and second<sup><a href="#2">2</a></sup>.</p>
<div id="1"><p>1. The first source.</p></div>
<div id="2">2. The second source.</div>
</main>
</body>
</html>
"""

CODE_PAGE = """<!DOCTYPE html>
<html>
<head><title>Code</title></head>
<body>
<p>Use <code>print</code> to write output.</p>
<pre><code class="language-python">def greet(name):
    return "hi " + name
</code></pre>
</body>
</html>
"""


@pytest.fixture
def isolate_logging():
    """Isolate logging configuration between tests.

    The CLI installs a RichHandler on the root logger; this keeps it from
    leaking into later tests.
    """
    # Store original logging state
    original_handlers = logging.root.handlers[:]
    original_level = logging.root.level

    # Clear all handlers to prevent stream access issues
    logging.root.handlers.clear()

    # Add a null handler that won't cause stream issues
    null_handler = logging.NullHandler()
    logging.root.addHandler(null_handler)

    yield

    # Restore original logging state
    logging.root.handlers.clear()
    logging.root.handlers.extend(original_handlers)
    logging.root.setLevel(original_level)


@pytest.fixture
def options() -> PipelineOptions:
    return PipelineOptions(force=True, minify_html=False, webp_pictures=False)


@pytest.fixture
def context(options: PipelineOptions) -> PipelineContext:
    return PipelineContext.create(options)


@pytest.fixture
def footnote_page() -> str:
    return FOOTNOTE_PAGE


@pytest.fixture
def code_page() -> str:
    return CODE_PAGE


@pytest.fixture
def site(tmp_path: Path) -> Path:
    """A small generated site with one page, one stylesheet and an image."""
    root = tmp_path / "_site"
    (root / "posts").mkdir(parents=True)
    (root / "assets").mkdir()
    (root / "posts" / "notes.html").write_text(FOOTNOTE_PAGE, encoding="utf-8")
    (root / "index.html").write_text(CODE_PAGE, encoding="utf-8")
    (root / "assets" / "main.css").write_text(
        "body { margin: 0 }\n.footnotes { font-size: 80% }\n.unused-widget { color: red }\n",
        encoding="utf-8",
    )
    return root
