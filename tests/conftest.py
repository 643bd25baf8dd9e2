from __future__ import annotations

import sys
import textwrap
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT / "src") not in sys.path:
    sys.path.insert(0, str(ROOT / "src"))


import pytest

from logcall.engine import LogcallEngine

GENERATED_LOGGER = "logcall.generated"

PRELUDE = textwrap.dedent(
    f"""
    from __future__ import annotations

    import asyncio
    import logging

    from logcall import logcall

    logger = logging.getLogger("{GENERATED_LOGGER}")


    class Ok:
        def __init__(self, value):
            self.value = value

        def __repr__(self):
            return f"Ok({{self.value!r}})"


    class Err:
        def __init__(self, error):
            self.error = error

        def __repr__(self):
            return f"Err({{self.error!r}})"
    """
)


def run_code(code: str) -> dict[str, object]:
    namespace: dict[str, object] = {"__name__": "logcall_generated"}
    exec(compile(code, "<logcall>", "exec"), namespace)
    return namespace


@pytest.fixture
def instrument():
    def _instrument(
        body: str,
        engine: LogcallEngine | None = None,
        *,
        prelude: str = PRELUDE,
    ) -> dict[str, object]:
        source = prelude + textwrap.dedent(body)
        plan = (engine or LogcallEngine()).transform_source(source)
        assert not plan.errors, plan.errors
        assert not plan.inspections
        return run_code(plan.code)

    return _instrument


@pytest.fixture
def generated_records(caplog):
    caplog.set_level(1, logger=GENERATED_LOGGER)

    def _records() -> list[tuple[str, str]]:
        return [
            (record.levelname, record.getMessage())
            for record in caplog.records
            if record.name == GENERATED_LOGGER
        ]

    return _records
