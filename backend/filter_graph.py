"""
Filter Graph IR - Structured filter chains serialized only at the assembler

A graph is an ordered list of chains; each chain reads labelled inputs,
applies one or more filter steps and binds labelled outputs:

    [in0][in1]step1=a:b,step2=k=v[out]

Labels are single-writer: binding a label twice raises FilterGraphError.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from core.errors import FilterGraphError


def format_number(value: Union[int, float], decimals: int = 6) -> str:
    """
    Render a number for the filter graph.

    Integer-valued floats print without a fraction, other values are
    rounded to `decimals` places with trailing zeros trimmed.
    """
    if isinstance(value, bool):
        value = int(value)
    if isinstance(value, int):
        return str(value)
    rounded = round(float(value), decimals)
    if rounded == int(rounded):
        text = str(int(rounded))
    else:
        text = f"{rounded:.{decimals}f}".rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def _render(value: Any) -> str:
    if isinstance(value, (int, float)):
        return format_number(value)
    return str(value)


@dataclass
class FilterStep:
    """One filter invocation: name plus positional and keyed options"""
    name: str
    positional: List[Any] = field(default_factory=list)
    options: List[Tuple[str, Any]] = field(default_factory=list)

    def serialize(self) -> str:
        if not self.name:
            raise FilterGraphError("Filter step has no filter name")
        parts = [_render(p) for p in self.positional]
        parts.extend(f"{key}={_render(value)}" for key, value in self.options)
        if not parts:
            return self.name
        return f"{self.name}={':'.join(parts)}"


def step(name: str, *positional: Any, **options: Any) -> FilterStep:
    """Shorthand for FilterStep; keyword order is preserved"""
    return FilterStep(name=name, positional=list(positional), options=list(options.items()))


@dataclass
class FilterChain:
    """Inputs, a non-empty sequence of steps, and outputs"""
    inputs: List[str] = field(default_factory=list)
    steps: List[FilterStep] = field(default_factory=list)
    outputs: List[str] = field(default_factory=list)

    def serialize(self) -> str:
        if not self.steps:
            raise FilterGraphError(
                f"Filter chain {''.join(f'[{i}]' for i in self.inputs)} has no filter operation"
            )
        head = "".join(f"[{label}]" for label in self.inputs)
        body = ",".join(s.serialize() for s in self.steps)
        tail = "".join(f"[{label}]" for label in self.outputs)
        return f"{head}{body}{tail}"


class LabelAllocator:
    """Generates unique labels from per-prefix monotonic counters"""

    def __init__(self):
        self._counters: Dict[str, int] = {}
        self._bound: set = set()

    def next(self, prefix: str) -> str:
        index = self._counters.get(prefix, 0)
        self._counters[prefix] = index + 1
        return f"{prefix}{index}"

    def bind(self, label: str):
        if label in self._bound:
            raise FilterGraphError(f"Label [{label}] is already bound in this graph")
        self._bound.add(label)

    def is_bound(self, label: str) -> bool:
        return label in self._bound


class FilterGraph:
    """Ordered list of filter chains sharing one label namespace"""

    def __init__(self, labels: Optional[LabelAllocator] = None):
        self.chains: List[FilterChain] = []
        self.labels = labels or LabelAllocator()

    def label(self, prefix: str) -> str:
        return self.labels.next(prefix)

    def add(
        self,
        inputs: Union[str, Sequence[str], None],
        steps: Union[FilterStep, Iterable[FilterStep]],
        outputs: Union[str, Sequence[str], None],
    ) -> FilterChain:
        """
        Append a chain, binding its outputs.

        Raises:
            FilterGraphError: If the chain is empty or an output label is reused
        """
        ins = [inputs] if isinstance(inputs, str) else list(inputs or [])
        outs = [outputs] if isinstance(outputs, str) else list(outputs or [])
        step_list = [steps] if isinstance(steps, FilterStep) else list(steps)
        chain = FilterChain(inputs=ins, steps=step_list, outputs=outs)
        if not chain.steps:
            raise FilterGraphError(f"Refusing to add an empty filter chain for outputs {outs}")
        for label in outs:
            self.labels.bind(label)
        self.chains.append(chain)
        return chain

    def __len__(self) -> int:
        return len(self.chains)

    def serialize(self) -> str:
        return sanitize_filter_graph(";".join(chain.serialize() for chain in self.chains))


_DOUBLE_SEMICOLON = re.compile(r";{2,}")


def sanitize_filter_graph(graph: str) -> str:
    """Collapse repeated separators and strip leading/trailing ones"""
    return _DOUBLE_SEMICOLON.sub(";", graph).strip(";")
