"""
此模块定义了工具评论 (ToolReview) 相关的 API 端点。

主要功能:
- 分页获取某个工具的评论列表 (最新在前)，附带评论者基本信息。
- 登录用户为工具提交 1-5 分的评论，每个用户对同一工具只能评论一次，所有者不能评论自己的工具。
- 提交评论后从评论表重新聚合工具的 rating_average / rating_count，并记录一条 SIGNUP 事件
  (metadata.action = review_created，metadata.rating 为评分)。

依赖模型: Tool, ToolReview
使用 Flask 蓝图: reviews_bp (挂载在 /api/tools 下)

注意: 如果新增、删除或修改功能，必须在这开头的注释中同步修改，如发现功能与注释描述不同，也可以在确定后修改。
"""
from flask import Blueprint, jsonify, request, current_app
from flask_jwt_extended import jwt_required
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from sama import db
from sama.models import Tool, ToolReview
from sama.models.review import MIN_RATING, MAX_RATING
from sama.services.analytics_service import track_event
from sama.services.catalog_query import MAX_SQL_INTEGER
from sama.utils.auth_utils import current_user_id, get_optional_identity

reviews_bp = Blueprint('reviews', __name__)


def _valid_rating(value):
    # bool 是 int 的子类，需要单独排除
    return isinstance(value, int) and not isinstance(value, bool) and MIN_RATING <= value <= MAX_RATING


@reviews_bp.route('/<int:tool_id>/reviews', methods=['GET'])
def get_reviews(tool_id):
    """分页获取工具评论"""
    tool = db.session.get(Tool, tool_id)
    if not tool:
        return jsonify({'error': '找不到指定的工具'}), 404

    user_id, is_admin = get_optional_identity()
    if not tool.can_be_viewed_by(user_id, is_admin):
        return jsonify({'error': '无权访问该工具'}), 403

    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', current_app.config['REVIEWS_DEFAULT_PER_PAGE'], type=int)
    page = page if page and page > 0 else 1
    if not per_page or per_page < 1:
        per_page = current_app.config['REVIEWS_DEFAULT_PER_PAGE']
    per_page = min(per_page, current_app.config['SEARCH_MAX_PER_PAGE'])

    query = ToolReview.query.options(joinedload(ToolReview.user)).filter(
        ToolReview.tool_id == tool_id
    ).order_by(ToolReview.created_at.desc(), ToolReview.id.desc())

    if page * per_page > MAX_SQL_INTEGER:
        # 偏移量超出数据库整数范围，直接返回空页
        reviews, total = [], query.order_by(None).count()
    else:
        pagination = query.paginate(page=page, per_page=per_page, error_out=False)
        reviews, total = pagination.items, pagination.total

    return jsonify({
        'reviews': [review.to_dict() for review in reviews],
        'total_count': total,
        'page': page,
        'per_page': per_page
    })


@reviews_bp.route('/<int:tool_id>/reviews', methods=['POST'])
@jwt_required()
def create_review(tool_id):
    """提交评论并刷新工具评分"""
    user_id = current_user_id()
    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        return jsonify({'error': '请求体不能为空'}), 400

    rating = data.get('rating')
    if not _valid_rating(rating):
        return jsonify({'error': f'评分必须是 {MIN_RATING} 到 {MAX_RATING} 之间的整数'}), 400

    for key in ('title', 'content'):
        if data.get(key) is not None and not isinstance(data[key], str):
            return jsonify({'error': f'{key} 必须是字符串'}), 400

    tool = db.session.get(Tool, tool_id)
    if not tool:
        return jsonify({'error': '找不到指定的工具'}), 404
    if not tool.can_be_viewed_by(user_id):
        return jsonify({'error': '无权评论该工具'}), 403
    if tool.owner_id == user_id:
        return jsonify({'error': '不能评论自己的工具'}), 400

    existing = ToolReview.query.filter_by(tool_id=tool_id, user_id=user_id).first()
    if existing:
        return jsonify({'error': '您已经评论过该工具'}), 400

    review = ToolReview(
        tool_id=tool_id,
        user_id=user_id,
        rating=rating,
        title=(data.get('title') or '').strip() or None,
        content=(data.get('content') or '').strip() or None
    )

    try:
        db.session.add(review)
        db.session.flush()

        average, count = ToolReview.rating_stats(tool_id)
        tool.rating_average = round(average, 2)
        tool.rating_count = count

        track_event(tool_id, 'SIGNUP', user_id=user_id, metadata={'action': 'review_created', 'rating': rating})
        db.session.commit()
    except IntegrityError:
        # 并发重复提交由联合唯一约束兜底
        db.session.rollback()
        return jsonify({'error': '您已经评论过该工具'}), 400

    current_app.logger.info(f"用户 {user_id} 评论了工具 {tool_id}，评分 {rating}")
    return jsonify(review.to_dict()), 201
