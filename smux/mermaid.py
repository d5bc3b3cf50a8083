# smux/mermaid.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details
"""Render a machine configuration as a Mermaid ``stateDiagram-v2`` definition."""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Union

from smux.core.config import MachineConfig, StateID, as_config

ACTIVE_STATE_CLASS = "activeState"
ACTIVE_STATE_STYLE = "fill:#ffd54f,stroke:#f57f17,color:#000,stroke-width:2px;"


def build_mermaid_diagram(
    config: Union[MachineConfig, Mapping[str, Any], None],
    highlight: Optional[StateID] = None,
) -> str:
    """
    Build a Mermaid state diagram from the configuration's transition table.

    Example output::

        stateDiagram-v2
        [*] --> idle
        idle --> loading: FETCH
        loading --> success: RESOLVE
        classDef activeState fill:#ffd54f,stroke:#f57f17,color:#000,stroke-width:2px;

    :param config: Machine definition; only ``initial`` and transitions are read.
    :param highlight: State to mark with the ``activeState`` class.
    :raises ValueError: If ``config`` is None.
    """
    if config is None:
        raise ValueError("config must not be None")
    config = as_config(config)

    lines: List[str] = ["stateDiagram-v2", f"[*] --> {config.initial}"]
    for state_id, node in config.states.items():
        for event, target in node.on.items():
            if target is None:
                continue
            lines.append(f"{state_id} --> {target}: {event}")

    lines.append(f"classDef {ACTIVE_STATE_CLASS} {ACTIVE_STATE_STYLE}")
    if highlight is not None:
        lines.append(f"class {highlight} {ACTIVE_STATE_CLASS}")
    return "\n".join(lines)
