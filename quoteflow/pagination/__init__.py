"""Cursor pagination over live quotation lists."""

from .cursor_manager import CursorPaginationManager, PageResult

__all__ = ["CursorPaginationManager", "PageResult"]
