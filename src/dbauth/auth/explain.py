"""Human-readable projection of a :class:`~dbauth.models.ResolutionTrace`.

Used by ``dbauth auth describe`` and appended to every error the resolver
surfaces. Never includes secret values: trace entries only hold source
labels, outcomes, auth types and field *names*.
"""

from __future__ import annotations

from dbauth.models import ResolutionTrace, TraceEntry


def explain_entry(entry: TraceEntry) -> str:
    text = f"[{entry.tier.value}] {entry.source}: {entry.outcome.value.replace('_', ' ')}"
    if entry.auth_type is not None:
        text += f" {entry.auth_type.value}"
    if entry.detail:
        text += f" ({entry.detail})"
    return text


def explain(trace: ResolutionTrace) -> list[str]:
    """Return one line per trace entry, in the order the sources were checked.

    Example::

        >>> explain(trace)
        ['[1] explicit config: skipped (no complete credential set)',
         '[2] environment: skipped (no complete credential set)',
         '[3] profile [my-workspace]: selected databricks-cli']
    """
    return [explain_entry(entry) for entry in trace]


def summarize(trace: ResolutionTrace) -> str:
    """Indented multi-line form of :func:`explain`, for error messages."""
    return "\n".join(f"  {line}" for line in explain(trace))
