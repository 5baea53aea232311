from __future__ import annotations

from typing import Dict, List, Optional

from .symbols import Symbol


class DuplicateDeclaration(Exception):
    def __init__(self, name: str, existing: Symbol) -> None:
        super().__init__(f"'{name}' already defined in this scope")
        self.name = name
        self.existing = existing


class ScopeStack:
    """Lexical frames, innermost last. Frame 0 is the global frame and is never popped."""

    def __init__(self) -> None:
        self._frames: List[Dict[str, Symbol]] = [{}]

    @property
    def depth(self) -> int:
        return len(self._frames)

    def push(self) -> None:
        self._frames.append({})

    def pop(self) -> None:
        if len(self._frames) == 1:
            raise RuntimeError("cannot pop the global frame")
        self._frames.pop()

    def declare(self, name: str, symbol: Symbol) -> None:
        frame = self._frames[-1]
        if name in frame:
            raise DuplicateDeclaration(name, frame[name])
        frame[name] = symbol

    def resolve(self, name: str) -> Optional[Symbol]:
        for frame in reversed(self._frames):
            if name in frame:
                return frame[name]
        return None
