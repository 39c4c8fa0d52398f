"""Property tests: rotation never loses records.

Uses hypothesis to generate record batches and checks that whatever was in
the live log before a rotation ends up, verbatim and in order, at the tail
of the working copy.
"""

import tempfile
from pathlib import Path

from hypothesis import given, settings, strategies as st

from replog.rotation.rotator import rotate

records = st.lists(
    st.text(
        alphabet=st.characters(codec="utf-8", exclude_characters="\n"),
        max_size=40,
    ),
    max_size=30,
)


def _encode(batch: list[str]) -> bytes:
    return "".join(f"{r}\n" for r in batch).encode("utf-8")


@given(existing=st.binary(max_size=200), batch=records, chunk_size=st.integers(1, 64))
@settings(max_examples=100, deadline=None)
def test_drain_appends_every_record_in_order(existing, batch, chunk_size):
    """P1: the new region of the working copy equals the drained log."""
    with tempfile.TemporaryDirectory() as tmp:
        live = Path(tmp) / "replog"
        work = Path(tmp) / "replog.slurp"
        live.write_bytes(_encode(batch))
        work.write_bytes(existing)

        result = rotate(live, work, chunk_size=chunk_size)

        assert result.ok
        assert work.read_bytes() == existing + _encode(batch)
        assert result.bytes_copied == len(_encode(batch))


@given(batch=records)
@settings(max_examples=50, deadline=None)
def test_drain_empties_live_log(batch):
    """P2: after a successful drain the live log has size zero."""
    with tempfile.TemporaryDirectory() as tmp:
        live = Path(tmp) / "replog"
        live.write_bytes(_encode(batch))

        assert rotate(live, Path(tmp) / "replog.slurp").ok
        assert live.stat().st_size == 0


@given(content=st.binary(max_size=500), passes=st.integers(1, 4))
@settings(max_examples=50, deadline=None)
def test_one_shot_never_modifies_live_log(content, passes):
    """P3: one-shot drains leave the live log byte-identical."""
    with tempfile.TemporaryDirectory() as tmp:
        live = Path(tmp) / "replog"
        work = Path(tmp) / "replog.slurp"
        live.write_bytes(content)

        for _ in range(passes):
            assert rotate(live, work, one_shot=True).ok

        assert live.read_bytes() == content
        assert work.read_bytes() == content * passes


@given(batches=st.lists(records, min_size=1, max_size=5))
@settings(max_examples=50, deadline=None)
def test_interleaved_appends_and_drains_lose_nothing(batches):
    """Alternating producer appends and drains reproduce the full stream."""
    with tempfile.TemporaryDirectory() as tmp:
        live = Path(tmp) / "replog"
        work = Path(tmp) / "replog.slurp"

        for batch in batches:
            with open(live, "ab") as f:
                f.write(_encode(batch))
            assert rotate(live, work).ok

        assert work.read_bytes() == b"".join(_encode(b) for b in batches)
