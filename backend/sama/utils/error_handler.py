"""
错误处理模块

提供全站统一的 JSON 错误响应，包括：
- 404错误按路径模式识别资源类型 (工具、分类、评论、分析数据)
- 400/401/403/405/429 等常见状态码的统一响应
- 数据库异常 (SQLAlchemyError) 回滚会话并返回通用的 500 响应，详细信息只写入服务端日志
"""

from flask import jsonify, request, current_app
import re
from sqlalchemy.exc import SQLAlchemyError

# 定义URL模式及错误提示
URL_PATTERNS = [
    # 评论相关 (需排在工具之前)
    (re.compile(r'/api/tools/\d+/reviews'), "评论不存在或工具已被删除"),
    # 工具相关
    (re.compile(r'/api/tools/([^/]+)'), "工具不存在或已被删除"),
    # 分类相关
    (re.compile(r'/api/categories/([^/]+)'), "分类不存在"),
    # 分析相关
    (re.compile(r'/api/analytics/([^/]+)'), "工具不存在，无法获取分析数据"),
    # 后台相关
    (re.compile(r'/api/admin/'), "管理员功能不存在或无权限访问"),
]

SERVER_ERROR_MESSAGE = '服务器内部错误，请稍后再试'

class ErrorHandler:
    """错误处理器"""

    @staticmethod
    def register_handlers(app):
        """注册所有错误处理器"""

        @app.errorhandler(404)
        def handle_not_found(e):
            """处理404错误"""
            path = request.path

            # 根据URL模式提供个性化响应
            error_msg = "请求的资源不存在"
            for pattern, msg in URL_PATTERNS:
                if pattern.search(path):
                    error_msg = msg
                    break

            ErrorHandler._record_error(404, error_msg)
            return jsonify({
                'error': 'not_found',
                'message': error_msg,
                'status': 404
            }), 404

        @app.errorhandler(500)
        def handle_server_error(e):
            """处理500错误"""
            # 记录完整错误到日志，响应中不暴露细节
            original = getattr(e, 'original_exception', None) or e
            current_app.logger.error(f"服务器错误: {request.path} - {original}", exc_info=original)
            return jsonify({
                'error': 'server_error',
                'message': SERVER_ERROR_MESSAGE,
                'status': 500
            }), 500

        @app.errorhandler(SQLAlchemyError)
        def handle_database_error(e):
            """处理未在路由中捕获的数据库异常"""
            from sama import db
            db.session.rollback()
            current_app.logger.error(f"数据库错误: {request.path} - {e}", exc_info=True)
            return jsonify({
                'error': 'server_error',
                'message': SERVER_ERROR_MESSAGE,
                'status': 500
            }), 500

        # 注册其他常见错误代码
        for code in [400, 401, 403, 405, 429]:
            app.register_error_handler(code, ErrorHandler._create_error_handler(code))

    @staticmethod
    def _create_error_handler(status_code):
        """创建特定状态码的错误处理器"""
        def handler(e):
            # 根据状态码设置错误消息
            error_msgs = {
                400: "请求无效",
                401: "未授权访问",
                403: "禁止访问",
                405: "不支持的请求方法",
                429: "请求过于频繁"
            }
            error_msg = error_msgs.get(status_code, "请求出错")

            ErrorHandler._record_error(status_code, error_msg)

            return jsonify({
                'error': f'error_{status_code}',
                'message': error_msg,
                'status': status_code
            }), status_code

        return handler

    @staticmethod
    def _record_error(status_code, error_msg):
        """把错误写入日志，便于按状态码和路径排查"""
        current_app.logger.warning(
            f"[错误日志] {status_code} {request.method} {request.path} "
            f"来自 {request.remote_addr}: {error_msg}"
        )
