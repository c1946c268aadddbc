"""Playwright 브라우저 관리"""

from .browser import BrowserProvider, build_launch_args

__all__ = ["BrowserProvider", "build_launch_args"]
