"""Flask application factory for the py-memsim web driver.

The ``create_app`` function builds (or adopts) a ``SimulationContext``
and returns a Flask app exposing it as JSON:

- ``GET /api/state`` — current snapshot, processes and counters.
- ``POST /api/memory`` — (re)configure the number of frames.
- ``POST /api/processes`` — register a new process.
- ``POST /api/simulate`` — run a reference string with one policy and
  return every step's snapshot.
- ``POST /api/translate`` — translate a paged or segmented address, or
  a batch of random ones.
- ``POST /api/tlb`` — replay references through the TLB.
- ``GET /api/log`` — the simulation event log.

The app never formats anything for humans; pacing through the returned
steps is up to the client.
"""

from __future__ import annotations

import random
from dataclasses import asdict
from typing import Any

from flask import Flask, Response, jsonify, request

from py_memsim.config import (
    DEFAULT_LOCALITY,
    DEFAULT_MEMORY_ACCESS_TIME,
    DEFAULT_TLB_HIT_TIME,
    FRAME_BOUNDS,
    REFERENCE_LENGTH_BOUNDS,
    TLB_REFERENCE_LENGTH_BOUNDS,
)
from py_memsim.logging import LogLevel
from py_memsim.memory.frames import AllocationError
from py_memsim.memory.tables import ProcessLimitError
from py_memsim.simulator import ReferenceSimulator, SimulationContext, SimulationStats
from py_memsim.workload import generate_reference_string, generate_tlb_references

_HTTP_CREATED = 201
_HTTP_BAD_REQUEST = 400
_HTTP_NOT_FOUND = 404
_HTTP_CONFLICT = 409


class _BadRequestError(Exception):
    """Raise when a request body is missing or malformed."""


def _body() -> dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        msg = "Expected a JSON object body"
        raise _BadRequestError(msg)
    return data


def _int_field(data: dict[str, Any], key: str, *, required: bool = False) -> int | None:
    value = data.get(key)
    if value is None:
        if required:
            msg = f"Missing '{key}' field"
            raise _BadRequestError(msg)
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f"'{key}' must be an integer"
        raise _BadRequestError(msg)
    return value


def _int_list(data: dict[str, Any], key: str) -> list[int] | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(v, int) and not isinstance(v, bool) for v in value):
        msg = f"'{key}' must be a list of integers"
        raise _BadRequestError(msg)
    return value


def _stats(stats: SimulationStats) -> dict[str, Any]:
    return {
        "hits": stats.hits,
        "faults": stats.faults,
        "references": stats.references,
        "hit_ratio": stats.hit_ratio,
        "fault_ratio": stats.fault_ratio,
    }


def create_app(context: SimulationContext | None = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        context: Simulation to serve; a default one with the standard
            frame count is created when omitted.

    Returns:
        A configured Flask application ready to serve.

    """
    ctx = context if context is not None else SimulationContext(frame_count=FRAME_BOUNDS.default)

    app = Flask(__name__)

    @app.errorhandler(_BadRequestError)
    def bad_request(exc: _BadRequestError) -> tuple[Response, int]:  # pyright: ignore[reportUnusedFunction]
        return jsonify({"error": str(exc)}), _HTTP_BAD_REQUEST

    @app.errorhandler(AllocationError)
    def no_memory(exc: AllocationError) -> tuple[Response, int]:  # pyright: ignore[reportUnusedFunction]
        return jsonify({"error": str(exc)}), _HTTP_CONFLICT

    @app.route("/api/state")
    def state() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return the current snapshot, process list and counters."""
        return jsonify(
            {
                "frames": ctx.frames.capacity if ctx.has_memory else None,
                "processes": [{"pid": p.pid, "name": p.name, "pages": p.page_count} for p in ctx.processes],
                "stats": _stats(ctx.stats()),
                "snapshot": ctx.snapshot().to_dict(),
            }
        )

    @app.route("/api/memory", methods=["POST"])
    def memory() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Configure physical memory.

        Expects JSON body: ``{"frames": n}`` (clamped to the valid range).
        """
        frames = _int_field(_body(), "frames", required=True)
        return jsonify({"frames": ctx.configure_memory(frames)})

    @app.route("/api/processes", methods=["POST"])
    def processes() -> tuple[Response, int]:  # pyright: ignore[reportUnusedFunction]
        """Register a process.

        Expects JSON body: ``{"name": str, "pages": n, "segments": [kb, ...]}``
        """
        data = _body()
        name = data.get("name", "")
        if not isinstance(name, str):
            msg = "'name' must be a string"
            raise _BadRequestError(msg)
        pages = _int_field(data, "pages", required=True)
        sizes = _int_list(data, "segments") or []
        try:
            proc = ctx.add_process(name, page_count=pages or 0, segment_sizes=sizes)
        except ProcessLimitError as exc:
            return jsonify({"error": str(exc)}), _HTTP_CONFLICT
        segments = [asdict(s) for s in proc.segments]
        return jsonify({"pid": proc.pid, "name": proc.name, "pages": proc.page_count, "segments": segments}), (
            _HTTP_CREATED
        )

    @app.route("/api/simulate", methods=["POST"])
    def simulate() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Run a reference string through one replacement policy.

        Expects JSON body with ``policy`` and either ``references`` or a
        generation request (``length``, optional ``seed`` and ``locality``).
        """
        data = _body()
        policy = data.get("policy", "fifo")
        references = _int_list(data, "references")
        if references is None:
            length = ctx.clamp_setting("Reference length", _int_field(data, "length"), REFERENCE_LENGTH_BOUNDS)
            locality = data.get("locality", DEFAULT_LOCALITY)
            if isinstance(locality, bool) or not isinstance(locality, int | float):
                msg = "'locality' must be a number"
                raise _BadRequestError(msg)
            try:
                references = generate_reference_string(
                    length,
                    page_count=ctx.process(1).page_count,
                    rng=random.Random(_int_field(data, "seed")),
                    locality=float(locality),
                )
            except ValueError as exc:
                raise _BadRequestError(str(exc)) from exc
        try:
            simulator = ReferenceSimulator(ctx, policy=str(policy), references=references)
        except ValueError as exc:
            raise _BadRequestError(str(exc)) from exc
        run_start = len(ctx.logger)
        steps = [
            {
                "position": s.position,
                "page": s.page,
                "hit": s.hit,
                "frame": s.frame,
                "victim": asdict(s.victim) if s.victim is not None else None,
                "snapshot": s.snapshot.to_dict(),
                "events": [str(e) for e in ctx.logger.for_step(s.snapshot.step, start=run_start)],
            }
            for s in simulator
        ]
        return jsonify(
            {
                "policy": str(simulator.policy.name),
                "references": simulator.references,
                "steps": steps,
                "stats": _stats(simulator.stats),
            }
        )

    @app.route("/api/translate", methods=["POST"])
    def translate() -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Translate an address.

        Expects ``{"pid": n, "address": a}`` for paging,
        ``{"pid": n, "segment": s, "offset": o}`` for segmentation, or
        ``{"random": true, "count": n, "seed": s, "mode": "paging"}`` for
        a batch of random translations (``mode`` may be ``segmentation``).
        """
        data = _body()
        if data.get("random"):
            mode = data.get("mode", "paging")
            if mode not in {"paging", "segmentation"}:
                msg = f"Unknown translation mode '{mode}'"
                raise _BadRequestError(msg)
            try:
                samples = ctx.sample_translations(
                    _int_field(data, "count"),
                    rng=random.Random(_int_field(data, "seed")),
                    segmented=mode == "segmentation",
                )
            except KeyError as exc:
                return jsonify({"error": exc.args[0]}), _HTTP_NOT_FOUND
            return jsonify({"mode": mode, "translations": [asdict(t) for t in samples]})
        pid = _int_field(data, "pid")
        pid = 1 if pid is None else pid
        try:
            if "segment" in data:
                segment = _int_field(data, "segment", required=True)
                offset = _int_field(data, "offset", required=True)
                result = ctx.translate_segment(pid, segment or 0, offset or 0)
            else:
                address = _int_field(data, "address", required=True)
                result = ctx.translate(pid, address or 0)
        except KeyError as exc:
            return jsonify({"error": exc.args[0]}), _HTTP_NOT_FOUND
        return jsonify(asdict(result))

    @app.route("/api/tlb", methods=["POST"])
    def tlb() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Replay references through a fresh TLB.

        Expects JSON body with optional ``size``, ``hit_time``,
        ``miss_time`` and either ``references`` or ``length``/``seed``.
        """
        data = _body()
        references = _int_list(data, "references")
        if references is None:
            length = ctx.clamp_setting("TLB reference length", _int_field(data, "length"), TLB_REFERENCE_LENGTH_BOUNDS)
            references = generate_tlb_references(length, rng=random.Random(_int_field(data, "seed")))
        hit_time = _int_field(data, "hit_time")
        miss_time = _int_field(data, "miss_time")
        report = ctx.run_tlb_simulation(
            references,
            hit_time=DEFAULT_TLB_HIT_TIME if hit_time is None else hit_time,
            miss_time=DEFAULT_MEMORY_ACCESS_TIME if miss_time is None else miss_time,
            size=_int_field(data, "size"),
        )
        return jsonify(
            {
                "references": references,
                "hits": report.hits,
                "misses": report.misses,
                "hit_ratio": report.hit_ratio,
                "total_time": report.total_time,
                "average_access_time": report.average_access_time,
                "time_without_tlb": report.time_without_tlb,
                "speedup": report.speedup,
                "accesses": [asdict(a) for a in report.accesses],
                "entries": [asdict(e) if e is not None else None for e in ctx.tlb.slots],
            }
        )

    @app.route("/api/log")
    def log() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return log entries, optionally filtered by ``min_level`` and ``source``."""
        level_name = request.args.get("min_level")
        try:
            min_level = LogLevel[level_name.upper()] if level_name else None
        except KeyError as exc:
            msg = f"Unknown log level '{level_name}'"
            raise _BadRequestError(msg) from exc
        entries = ctx.logger.filter(min_level=min_level, source=request.args.get("source"))
        return jsonify(
            [{"level": e.level.name, "message": e.message, "source": e.source, "step": e.step} for e in entries]
        )

    return app


def main() -> None:
    """Run the web driver development server.

    This is the ``py-memsim-web`` console entry point.
    """
    app = create_app()
    app.run(debug=True, port=8080)
