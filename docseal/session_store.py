"""
DocSeal Web Session-State Store
===============================

Session-tier :class:`~docseal.storage.KeyValueStore` kept in
``st.session_state``.  Nothing written here outlives the browser session,
matching the web client's ``sessionStorage`` tier.
"""

from __future__ import annotations

from typing import MutableMapping, Optional

import streamlit as st

_NAMESPACE = "docseal_vault"


class SessionStateStore:
    """Key-value slots stored under one dict in Streamlit session state."""

    def __init__(self, state: Optional[MutableMapping] = None, namespace: str = _NAMESPACE):
        self._state = state if state is not None else st.session_state
        self._namespace = namespace

    def _slots(self) -> dict:
        """Ensure the namespace dict exists."""
        if self._namespace not in self._state:
            self._state[self._namespace] = {}
        return self._state[self._namespace]

    def get(self, key: str) -> Optional[str]:
        return self._slots().get(key)

    def set(self, key: str, value: str) -> None:
        self._slots()[key] = value

    def delete(self, key: str) -> None:
        self._slots().pop(key, None)
