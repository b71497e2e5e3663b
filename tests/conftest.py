"""Shared fixtures for dita_l10n tests.

The sample projects mirror the two reference scenarios: a map with two
topics (one referenced twice) and an image, and a map whose topic references
are profiled with ``product`` values plus one DITAVAL file per publication.
All files are written to ``tmp_path``.
"""

import logging
from pathlib import Path
from typing import Dict

import pytest

from dita_l10n.config import EngineConfig

logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR" + bytes(range(64))

SAMPLE_MAP = """<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE map PUBLIC "-//OASIS//DTD DITA Map//EN" "map.dtd">
<map>
  <title>Sample map</title>
  <topicref href="topic1.dita"/>
  <topicref href="topic2.dita"/>
  <topicref href="topic1.dita"/>
</map>
"""

TOPIC1 = """<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE concept PUBLIC "-//OASIS//DTD DITA Concept//EN" "concept.dtd">
<concept id="topic1">
  <title>First topic</title>
  <shortdesc>Short description of the <b>first</b> topic.</shortdesc>
  <conbody>
    <p>Press <uicontrol>OK</uicontrol> to continue.</p>
    <p>See the picture below.<image href="images/sample.png"/></p>
    <ul>
      <li>Item one</li>
      <li>Item <i>two</i> with a <xref href="topic2.dita">link</xref></li>
    </ul>
    <codeblock>print("untouched")</codeblock>
  </conbody>
</concept>
"""

TOPIC2 = """<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE task PUBLIC "-//OASIS//DTD DITA Task//EN" "task.dtd">
<task id="topic2">
  <title>Second topic</title>
  <taskbody>
    <steps>
      <step><cmd>Open the <uicontrol>File</uicontrol> menu.</cmd></step>
    </steps>
  </taskbody>
</task>
"""

PROFILE_MAP = """<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE map PUBLIC "-//OASIS//DTD DITA Map//EN" "map.dtd">
<map>
  <title>Profiled map</title>
  <topicref href="topic1.dita" product="pub1"/>
  <topicref href="topic2.dita" product="pub1 pub2"/>
  <topicref href="topic3.dita" product="pub2"/>
</map>
"""

PROFILE_TOPIC = """<?xml version="1.0" encoding="UTF-8"?>
<concept id="{id}">
  <title>{title}</title>
  <conbody>
    <p>Common paragraph of {title}.</p>
    <p product="pub2">Only in publication two.</p>
    <p><image href="images/shared.png"/></p>
  </conbody>
</concept>
"""

DITAVAL = """<?xml version="1.0" encoding="UTF-8"?>
<val>
  <prop att="product" val="{include}" action="include"/>
  <prop att="product" val="{exclude}" action="exclude"/>
</val>
"""


def write_files(root: Path, files: Dict[str, object]) -> None:
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep user configuration and log files inside the test folder."""
    monkeypatch.setenv("DITA_L10N_CONFIG_DIR", str(tmp_path / "user-config"))
    monkeypatch.setenv("DITA_L10N_LOG_DIR", str(tmp_path / "logs"))


@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig()


@pytest.fixture
def sample_map(tmp_path) -> Path:
    """Map with topic1 (referenced twice), topic2 and one image."""
    root = tmp_path / "source"
    write_files(root, {
        "sample.ditamap": SAMPLE_MAP,
        "topic1.dita": TOPIC1,
        "topic2.dita": TOPIC2,
        "images/sample.png": PNG_BYTES,
    })
    return root / "sample.ditamap"


@pytest.fixture
def profile_project(tmp_path) -> Dict[str, Path]:
    """Map profiled on ``product`` with one DITAVAL per publication."""
    root = tmp_path / "profiled"
    write_files(root, {
        "profile.ditamap": PROFILE_MAP,
        "topic1.dita": PROFILE_TOPIC.format(id="topic1", title="Topic one"),
        "topic2.dita": PROFILE_TOPIC.format(id="topic2", title="Topic two"),
        "topic3.dita": PROFILE_TOPIC.format(id="topic3", title="Topic three"),
        "images/shared.png": PNG_BYTES,
        "pub1.ditaval": DITAVAL.format(include="pub1", exclude="pub2"),
        "pub2.ditaval": DITAVAL.format(include="pub2", exclude="pub1"),
    })
    return {
        "map": root / "profile.ditamap",
        "pub1": root / "pub1.ditaval",
        "pub2": root / "pub2.ditaval",
        "root": root,
    }


@pytest.fixture
def make_files():
    """Return a helper writing ``{relative path: text or bytes}`` under a folder."""
    return write_files
