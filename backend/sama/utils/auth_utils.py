from functools import wraps
from flask import jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt, get_jwt_identity, verify_jwt_in_request
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError

def admin_required(fn):
    """
    装饰器：确保只有管理员才能访问该端点。

    它会检查 JWT 中是否存在 'is_admin': True 的声明，
    并在内部套上 jwt_required()，缺少令牌时返回 401。
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        # 获取当前 JWT 的声明
        claims = get_jwt()

        # 检查 is_admin 声明是否存在且为 True
        if claims.get('is_admin') is True:
            return fn(*args, **kwargs)
        else:
            # 如果不是管理员，返回 403 Forbidden 错误
            return jsonify({'error': '仅管理员可访问'}), 403

    # 手动应用 jwt_required 以确保在检查权限前用户已认证
    return jwt_required()(wrapper)

def current_user_id():
    """返回当前 JWT 中的用户 ID (int)，必须在 jwt_required 保护的视图中调用"""
    return int(get_jwt_identity())

def is_admin_request():
    return get_jwt().get('is_admin') is True

def get_optional_identity():
    """
    尝试解析可选的 JWT。

    返回:
        tuple: (user_id, is_admin)，未登录或令牌无效时为 (None, False)
    """
    try:
        verify_jwt_in_request(optional=True)
        user_identity = get_jwt_identity()
    except (JWTExtendedException, PyJWTError) as e:
        current_app.logger.info(f"可选 JWT 校验失败，按匿名访问处理: {e}")
        return None, False
    if not user_identity:
        return None, False
    return int(user_identity), is_admin_request()
