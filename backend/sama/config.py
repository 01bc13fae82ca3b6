import os
from dotenv import load_dotenv

# 加载.env文件
load_dotenv()

# API相关配置
API_HOST = os.getenv('API_HOST', '0.0.0.0')  # 确保默认值是有效的IP
API_PORT = int(os.getenv('API_PORT', 5001))  # 确保默认端口是数字
API_DEBUG = os.getenv('API_DEBUG', 'True').lower() == 'true'

# 安全相关配置
SECRET_KEY = os.getenv('SECRET_KEY', 'dev_secret_key_12345')
# 与身份服务共享的密钥，本服务只校验令牌，不签发登录令牌
JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', 'jwt_secret_key_67890')
JWT_ACCESS_TOKEN_EXPIRES = 60 * 60 * 24 * 30  # 30天
JWT_TOKEN_LOCATION = ['headers']
JWT_HEADER_NAME = 'Authorization'
JWT_HEADER_TYPE = 'Bearer'

# 数据库配置
DB_TYPE = os.getenv('DB_TYPE', 'sqlite')
DB_USER = os.getenv('DB_USER')
DB_PASSWORD = os.getenv('DB_PASSWORD')
DB_HOST = os.getenv('DB_HOST', 'localhost')
DB_PORT = os.getenv('DB_PORT', '5432')
DB_NAME = os.getenv('DB_NAME')
SQLALCHEMY_TRACK_MODIFICATIONS = False
SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'False').lower() == 'true'

# 限流配置 (Flask-Limiter)，生产环境可指向 Redis，例如 redis://localhost:6379/0
RATELIMIT_STORAGE_URI = os.getenv('RATELIMIT_STORAGE_URI', 'memory://')
RATELIMIT_DEFAULT = ["10000 per day", "3000 per hour"]
EVENT_TRACKING_LIMIT = os.getenv('EVENT_TRACKING_LIMIT', '120 per minute')

# --- 目录检索配置 ---
SEARCH_DEFAULT_PER_PAGE = int(os.getenv('SEARCH_DEFAULT_PER_PAGE', 20))
SEARCH_MAX_PER_PAGE = int(os.getenv('SEARCH_MAX_PER_PAGE', 50))
FACET_LIMIT = int(os.getenv('FACET_LIMIT', 20))
REVIEWS_DEFAULT_PER_PAGE = 10
ANALYTICS_DEFAULT_DAYS = int(os.getenv('ANALYTICS_DEFAULT_DAYS', 30))

# 日志配置
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FILE = os.getenv('LOG_FILE')  # 为空时只输出到控制台

# CORS配置
CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:3001",
    "http://localhost:5001",
    "*"
]

# 获取数据库URI
def get_database_uri():
    """构建数据库URI，DATABASE_URL 优先"""
    database_url = os.getenv('DATABASE_URL')
    if database_url:
        return database_url
    if DB_TYPE == 'postgresql':
        return f'postgresql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}'
    else:
        # 默认使用SQLite
        return 'sqlite:///' + os.path.join(os.path.abspath(os.path.dirname(__file__)), 'sama_catalog.db')
