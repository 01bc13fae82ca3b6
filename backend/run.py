#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Sama 工具目录后端服务启动脚本

使用方法：
1. 初始化数据库：flask --app run init-db
2. 启动开发服务器：python run.py
3. 使用gunicorn部署：gunicorn -w 4 -b 0.0.0.0:5001 "run:app"

注意：
- 开发模式下使用Flask内置服务器
- 多进程部署时请把 RATELIMIT_STORAGE_URI 指向共享存储，否则频率限制按进程独立计数
"""
import os
import logging
from dotenv import load_dotenv

# 加载.env中的环境变量，必须在导入配置之前
load_dotenv()

from sama import create_app as flask_create_app

logger = logging.getLogger(__name__)

# 创建Flask应用实例 - 为gunicorn提供
app = flask_create_app()

# 直接运行此脚本时启动Flask开发服务器
if __name__ == '__main__':
    app_host = os.getenv('API_HOST', '0.0.0.0')
    app_port = int(os.getenv('API_PORT', 5001))
    app_debug = os.getenv('API_DEBUG', 'True').lower() == 'true'

    # 打印应用配置信息
    app.logger.info(f"应用配置: HOST={app_host}, PORT={app_port}, DEBUG={app_debug}")

    app.run(host=app_host, port=app_port, debug=app_debug)
