from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, Sequence, Tuple, Union


# Slot order baked into the coffee-leaf model; change together with the model.
COFFEE_LEAF_CLASSES: Tuple[str, ...] = ("Rust", "Sooty Mold", "Abiotic", "Cercospora")


@dataclass(frozen=True)
class ClassCatalog:
    """
    Ordered class names; position i names class-score slot i of a model row.
    """

    names: Tuple[str, ...] = COFFEE_LEAF_CLASSES

    def __post_init__(self) -> None:
        names = tuple(str(n) for n in self.names)
        if not names:
            raise ValueError("Class catalog must contain at least one class name")
        if any(not n.strip() for n in names):
            raise ValueError("Class names must be non-empty")
        if len(set(names)) != len(names):
            raise ValueError(f"Class names must be unique, got {list(names)}")
        object.__setattr__(self, "names", names)

    def __len__(self) -> int:
        return len(self.names)

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)

    def __getitem__(self, index: int) -> str:
        return self.names[index]

    def index_of(self, name: str) -> int:
        return self.names.index(name)

    def as_mapping(self) -> Dict[int, str]:
        return dict(enumerate(self.names))


DEFAULT_CATALOG = ClassCatalog()


def _parse_names_mapping(lines: Sequence[str]) -> Dict[int, str]:
    names: Dict[int, str] = {}
    in_names = False

    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line == "names:":
            in_names = True
            continue
        if not in_names:
            continue
        # A new top-level key ends the names block.
        if not raw[:1].isspace() and not line[:1].isdigit():
            break

        if ":" not in line:
            continue
        left, right = line.split(":", 1)
        left = left.strip()
        right = right.strip().strip("'").strip('"')
        if not left.isdigit():
            continue
        names[int(left)] = right

    return names


def load_class_catalog(metadata_path: Union[str, Path]) -> ClassCatalog:
    """
    Load a catalog from the `metadata.yaml` written next to exported YOLO models:

        names:
          0: Rust
          1: Sooty Mold
          ...

    Indices must run contiguously from 0.
    """

    path = Path(metadata_path)
    if not path.exists():
        raise FileNotFoundError(f"Class metadata not found: {path}")

    mapping = _parse_names_mapping(path.read_text(encoding="utf-8").splitlines())
    if not mapping:
        raise ValueError(f"No class names found in {path}")

    expected = list(range(len(mapping)))
    if sorted(mapping) != expected:
        raise ValueError(f"Class indices in {path} must be contiguous from 0, got {sorted(mapping)}")

    return ClassCatalog(tuple(mapping[i] for i in expected))
