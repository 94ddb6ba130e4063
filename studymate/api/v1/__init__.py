"""API v1 控制器"""

from studymate.api.v1 import health

controllers = [health.router]
