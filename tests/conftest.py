"""
共享 fixture：内存存储 + 生成器工厂
"""
import sys
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from llms_cms_generator.config import config_from_dict
from llms_cms_generator.generator import LLMGenerator
from llms_cms_generator.store import ArtifactStore, HashRepository, MemoryBlobBackend
from llms_cms_generator.tree_source import build_sites

from sample_data import FIXED_NOW, scenario_a_export


@pytest.fixture
def memory_store():
    store = ArtifactStore(HashRepository(":memory:"), MemoryBlobBackend())
    yield store
    store.close()


@pytest.fixture
def make_generator(memory_store):
    """make_generator(raw_config, export) -> LLMGenerator with a fixed clock."""

    def _make(raw_config=None, export=None):
        config = config_from_dict(raw_config or {})
        sites = build_sites(export if export is not None else scenario_a_export())
        return LLMGenerator(config, sites, memory_store, clock=lambda: FIXED_NOW)

    return _make
