"""Shared test fixtures."""

from __future__ import annotations

import os

import pytest

from cortex_guard.config import reset_config, load_config
from cortex_guard.database import reset_db, init_db


@pytest.fixture
def isolated_config(tmp_path):
    """Point config, audit trail and database into tmp_path for one test."""
    reset_config()
    reset_db()

    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        f"audit:\n  jsonl_path: {tmp_path / 'audit' / 'audit.jsonl'}\n"
        f"  structured_sink: true\n  table: audit_events\n"
        f"database:\n  path: {tmp_path / 'test.db'}\n"
        f"approvals:\n  default_timeout_ms: 1000\n"
        f"classification:\n  max_external_classification: internal\n"
        f"  mask_pii_before_external: true\n"
        f"log:\n  dir: {tmp_path / 'logs'}\n"
    )

    cwd = os.getcwd()
    os.chdir(tmp_path)
    load_config(config_file)
    init_db()
    yield tmp_path

    os.chdir(cwd)
    reset_db()
    reset_config()
