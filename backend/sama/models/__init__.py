"""
模型包初始化文件。

导入所有模型类，使其可以通过 sama.models.ModelName 的方式被访问，
同时确保 Flask-Migrate 能看到所有模型。

注意: 如果新增、删除或修改功能，必须在这开头的注释中同步修改，如发现功能与注释描述不同，也可以在确定后修改。
"""
from .user import User
from .category import Category
from .tool import Tool
from .tool_media import ToolMedia
from .review import ToolReview
from .analytics import AnalyticsEvent, ApiUsage

__all__ = [
    'User',
    'Category',
    'Tool',
    'ToolMedia',
    'ToolReview',
    'AnalyticsEvent',
    'ApiUsage',
]
