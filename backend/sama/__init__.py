"""
Sama 工具目录后端的应用工厂。

负责初始化 Flask 扩展 (SQLAlchemy、Migrate、JWT、CORS、Limiter)、配置日志、
注册错误处理器、蓝图以及 CLI 命令。

注意: 如果新增、删除或修改功能，必须在这开头的注释中同步修改，如发现功能与注释描述不同，也可以在确定后修改。
"""
import logging
import os

import click
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from sama.config import (
    SECRET_KEY, SQLALCHEMY_TRACK_MODIFICATIONS, SQLALCHEMY_ECHO, JWT_SECRET_KEY,
    JWT_TOKEN_LOCATION, JWT_HEADER_NAME, JWT_HEADER_TYPE, JWT_ACCESS_TOKEN_EXPIRES,
    get_database_uri,
    CORS_ORIGINS,
    RATELIMIT_STORAGE_URI, RATELIMIT_DEFAULT,
    SEARCH_DEFAULT_PER_PAGE, SEARCH_MAX_PER_PAGE, FACET_LIMIT,
    REVIEWS_DEFAULT_PER_PAGE, ANALYTICS_DEFAULT_DAYS,
    LOG_LEVEL, LOG_FILE,
)

# 初始化扩展
db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()

# 存储后端由 RATELIMIT_STORAGE_URI 配置决定
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=RATELIMIT_DEFAULT,
)

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def configure_logging(app):
    """为 app.logger 配置控制台和可选的文件处理器"""
    app.logger.setLevel(app.config['LOG_LEVEL'])
    # 同一进程内多次创建应用 (例如测试) 时避免处理器重复叠加
    for handler in list(app.logger.handlers):
        app.logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    app.logger.addHandler(console_handler)

    log_file_path = app.config.get('LOG_FILE')
    if log_file_path:
        os.makedirs(os.path.dirname(os.path.abspath(log_file_path)), exist_ok=True)
        file_handler = logging.FileHandler(log_file_path)
        file_handler.setFormatter(formatter)
        app.logger.addHandler(file_handler)


def create_app(test_config=None):
    app = Flask(__name__, instance_relative_config=False)

    app.config.from_mapping(
        SECRET_KEY=SECRET_KEY,
        SQLALCHEMY_TRACK_MODIFICATIONS=SQLALCHEMY_TRACK_MODIFICATIONS,
        SQLALCHEMY_DATABASE_URI=get_database_uri(),
        SQLALCHEMY_ECHO=SQLALCHEMY_ECHO,
        JWT_SECRET_KEY=JWT_SECRET_KEY,
        JWT_TOKEN_LOCATION=JWT_TOKEN_LOCATION,
        JWT_HEADER_NAME=JWT_HEADER_NAME,
        JWT_HEADER_TYPE=JWT_HEADER_TYPE,
        JWT_ACCESS_TOKEN_EXPIRES=JWT_ACCESS_TOKEN_EXPIRES,
        RATELIMIT_STORAGE_URI=RATELIMIT_STORAGE_URI,
        SEARCH_DEFAULT_PER_PAGE=SEARCH_DEFAULT_PER_PAGE,
        SEARCH_MAX_PER_PAGE=SEARCH_MAX_PER_PAGE,
        FACET_LIMIT=FACET_LIMIT,
        REVIEWS_DEFAULT_PER_PAGE=REVIEWS_DEFAULT_PER_PAGE,
        ANALYTICS_DEFAULT_DAYS=ANALYTICS_DEFAULT_DAYS,
        LOG_LEVEL=LOG_LEVEL,
        LOG_FILE=LOG_FILE,
    )
    if test_config:
        app.config.from_mapping(test_config)

    configure_logging(app)

    # 初始化扩展
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    limiter.init_app(app)
    CORS(app,
         origins=CORS_ORIGINS,
         methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
         allow_headers=["Content-Type", "Authorization", "Cache-Control"],
         supports_credentials=True
    )

    # --- 注册错误处理器 ---
    from sama.utils.error_handler import ErrorHandler
    ErrorHandler.register_handlers(app)

    # JWT 错误处理
    @jwt.invalid_token_loader
    def invalid_token_callback(error_string):
        return jsonify({
            'error': '无效的访问令牌',
            'message': str(error_string)
        }), 422

    @jwt.unauthorized_loader
    def unauthorized_callback(error_string):
        return jsonify({
            'error': '缺少访问令牌',
            'message': str(error_string)
        }), 401

    # 集合路由同时匹配带与不带结尾斜杠的路径，必须在注册蓝图之前设置
    app.url_map.strict_slashes = False

    # 注册所有蓝图
    with app.app_context():
        # 确保模型在 Flask-Migrate 扫描前全部导入
        from sama import models  # noqa: F401
        from sama.routes.tools import tools_bp
        from sama.routes.reviews import reviews_bp
        from sama.routes.categories import categories_bp
        from sama.routes.search import search_bp
        from sama.routes.analytics import analytics_bp
        from sama.routes.admin import admin_bp

        app.register_blueprint(tools_bp, url_prefix='/api/tools')
        app.register_blueprint(reviews_bp, url_prefix='/api/tools')
        app.register_blueprint(categories_bp, url_prefix='/api/categories')
        app.register_blueprint(search_bp, url_prefix='/api/search')
        app.register_blueprint(analytics_bp, url_prefix='/api/analytics')
        app.register_blueprint(admin_bp, url_prefix='/api/admin')

    @app.cli.command('init-db')
    def init_db_command():
        """创建数据表并写入基础分类"""
        from sama.utils.init_db import init_categories
        db.create_all()
        created = init_categories()
        click.echo(f"数据库初始化完成，新增 {created} 个分类。")

    @app.route('/api/health')
    def health_check():
        return jsonify({
            'status': 'healthy',
            'message': '后端服务运行正常'
        }), 200

    app.logger.info("Flask 应用创建完成")

    return app
