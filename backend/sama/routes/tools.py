"""
此模块定义了与工具 (Tool) 相关的 API 端点。

主要功能:
- 工具目录列表，支持关键词、分类、定价模式、技术栈、标签、评分范围、精选筛选，分页和排序，
  并附带全局分面统计 (由 catalog_query / facets 服务完成)。
- 工具的创建、读取 (按 ID 或 slug)、更新、删除，更新和删除只允许所有者操作。
- 名称变更时重新生成 slug 并检查冲突。
- 公开工具被查看时累加浏览量并记录 VIEW 事件。
- 所有者仪表盘: 列出自己的全部工具及汇总数据。

依赖模型: Tool, Category, User
外部服务: catalog_query, facets, analytics_service
使用 Flask 蓝图: tools_bp

注意: 如果新增、删除或修改功能，必须在这开头的注释中同步修改，如发现功能与注释描述不同，也可以在确定后修改。
"""
from flask import Blueprint, jsonify, request, current_app
from flask_jwt_extended import jwt_required
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import joinedload, selectinload

from sama import db
from sama.models import Tool, Category, User, ToolReview
from sama.models.tool import (
    PRICING_MODELS, TOOL_VISIBILITIES, API_TYPES, AUTH_TYPES, OWNER_SETTABLE_STATUSES,
)
from sama.services.catalog_query import (
    SearchParams, SearchParamError, run_search, serialize_search_results,
)
from sama.services.facets import collect_facets
from sama.services.analytics_service import track_event
from sama.utils.auth_utils import current_user_id, get_optional_identity
from sama.utils.slug_generator import slugify, slug_exists

tools_bp = Blueprint('tools', __name__)

REQUIRED_FIELDS = ('name', 'tagline', 'description', 'website_url')
OPTIONAL_URL_FIELDS = ('logo_url', 'demo_url', 'documentation_url', 'github_url', 'api_endpoint')
ENUM_FIELDS = {
    'pricing_model': PRICING_MODELS,
    'visibility': TOOL_VISIBILITIES,
    'api_type': API_TYPES,
    'authentication_type': AUTH_TYPES,
}
NULLABLE_ENUM_FIELDS = ('api_type', 'authentication_type')
NAME_MAX_LENGTH = 100

NO_CACHE_HEADERS = {
    'Cache-Control': 'no-cache, no-store, must-revalidate',
    'Pragma': 'no-cache',
    'Expires': '0'
}


class ToolPayloadError(ValueError):
    """工具提交/更新数据校验失败"""


def _clean_string_list(value, field):
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ToolPayloadError(f'{field} 必须是字符串列表')
    cleaned = []
    for item in value:
        item = item.strip()
        if item and item not in cleaned:
            cleaned.append(item)
    return cleaned


def validate_tool_fields(data, allow_status=False):
    """
    校验并规范化请求中出现的可编辑字段

    参数:
        data (dict): 请求 JSON
        allow_status (bool): 是否允许所有者修改状态 (仅限 DRAFT / PENDING_REVIEW)

    返回:
        dict: 清洗后的字段，只包含请求中出现的可编辑字段

    异常:
        ToolPayloadError: 任一字段取值非法
    """
    fields = {}

    for key in REQUIRED_FIELDS:
        if key in data:
            value = data[key]
            if not isinstance(value, str) or not value.strip():
                raise ToolPayloadError(f'{key} 不能为空')
            fields[key] = value.strip()
    if len(fields.get('name', '')) > NAME_MAX_LENGTH:
        raise ToolPayloadError(f'工具名称不能超过 {NAME_MAX_LENGTH} 个字符')

    for key in OPTIONAL_URL_FIELDS:
        if key in data:
            value = data[key]
            if value is not None and not isinstance(value, str):
                raise ToolPayloadError(f'{key} 必须是字符串')
            fields[key] = value.strip() if value else None

    for key, allowed in ENUM_FIELDS.items():
        if key not in data:
            continue
        value = data[key]
        if value is None and key in NULLABLE_ENUM_FIELDS:
            fields[key] = None
        elif value in allowed:
            fields[key] = value
        else:
            raise ToolPayloadError(f'{key} 的取值无效: {value}')

    if 'status' in data:
        if not allow_status:
            raise ToolPayloadError('不能在此处设置状态')
        if data['status'] not in OWNER_SETTABLE_STATUSES:
            raise ToolPayloadError(f"状态只能设置为 {', '.join(OWNER_SETTABLE_STATUSES)}")
        fields['status'] = data['status']

    for key in ('tags', 'tech_stack'):
        if key in data:
            fields[key] = _clean_string_list(data[key], key)

    if 'pricing_details' in data:
        if data['pricing_details'] is not None and not isinstance(data['pricing_details'], dict):
            raise ToolPayloadError('pricing_details 必须是对象')
        fields['pricing_details'] = data['pricing_details']

    if 'category_id' in data:
        category_id = data['category_id']
        if category_id is not None:
            # 验证类别是否存在
            if isinstance(category_id, bool) or not isinstance(category_id, int) \
                    or db.session.get(Category, category_id) is None:
                raise ToolPayloadError('指定的类别不存在')
        fields['category_id'] = category_id

    return fields


def _search_params():
    return SearchParams.from_args(
        request.args,
        default_per_page=current_app.config['SEARCH_DEFAULT_PER_PAGE'],
        max_per_page=current_app.config['SEARCH_MAX_PER_PAGE'],
    )


@tools_bp.route('/', methods=['GET'])
def get_tools():
    """获取公开工具目录，支持筛选、排序、分页，并附带全局分面统计"""
    try:
        params = _search_params()
    except SearchParamError as e:
        return jsonify({'error': str(e)}), 400

    try:
        tools, total = run_search(params)
        facets = collect_facets(current_app.config['FACET_LIMIT'])
        response = jsonify({
            'tools': serialize_search_results(tools),
            'total_count': total,
            'page': params.page,
            'per_page': params.per_page,
            'facets': facets
        })
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"获取工具列表时出错: {e}", exc_info=True)
        response = jsonify({'error': '获取工具列表失败'})
        response.status_code = 500

    # 设置响应头以防止缓存
    for key, value in NO_CACHE_HEADERS.items():
        response.headers[key] = value
    return response


@tools_bp.route('/', methods=['POST'])
@jwt_required()
def create_tool():
    """提交新工具，初始状态为 DRAFT / PRIVATE"""
    data = request.get_json(silent=True)

    if not isinstance(data, dict) or any(not data.get(field) for field in REQUIRED_FIELDS):
        return jsonify({'error': '缺少必填字段: name, tagline, description, website_url'}), 400

    user_id = current_user_id()
    if db.session.get(User, user_id) is None:
        return jsonify({'error': '用户不存在'}), 401

    # 状态和可见性在提交时固定为 DRAFT / PRIVATE，请求中的取值被忽略
    submitted = {key: value for key, value in data.items() if key not in ('status', 'visibility')}
    try:
        fields = validate_tool_fields(submitted)
    except ToolPayloadError as e:
        return jsonify({'error': str(e)}), 400

    slug = slugify(fields['name'])
    if not slug:
        return jsonify({'error': '工具名称必须包含字母或数字'}), 400
    if slug_exists(slug, Tool):
        return jsonify({'error': '同名工具已存在'}), 400

    tool = Tool(
        owner_id=user_id,
        slug=slug,
        status='DRAFT',
        visibility='PRIVATE',
        **fields
    )

    try:
        db.session.add(tool)
        db.session.flush()
        track_event(tool.id, 'SIGNUP', user_id=user_id, metadata={'source': 'api'})
        db.session.commit()
    except IntegrityError:
        # 并发提交同名工具时由唯一索引兜底
        db.session.rollback()
        return jsonify({'error': '同名工具已存在'}), 400

    current_app.logger.info(f"用户 {user_id} 提交了工具 {tool.id} ({tool.slug})")
    return jsonify(tool.to_dict()), 201


@tools_bp.route('/mine', methods=['GET'])
@jwt_required()
def get_my_tools():
    """所有者仪表盘: 当前用户的全部工具 (任意状态) 及汇总数据"""
    user_id = current_user_id()
    tools = Tool.query.options(
        joinedload(Tool.category),
        selectinload(Tool.media),
    ).filter(Tool.owner_id == user_id).order_by(Tool.created_at.desc(), Tool.id.desc()).all()

    stats = {
        'total_tools': len(tools),
        'published_tools': sum(1 for tool in tools if tool.status == 'APPROVED'),
        'total_views': sum(tool.view_count or 0 for tool in tools),
        'average_rating': round(sum(tool.rating_average or 0 for tool in tools) / len(tools), 2) if tools else 0
    }
    return jsonify({
        'tools': [tool.to_dict(include_owner=False) for tool in tools],
        'stats': stats
    })


def _tool_detail_response(tool):
    """详情响应: 校验可见性，公开工具累加浏览量并记录 VIEW 事件"""
    user_id, is_admin = get_optional_identity()
    if not tool.can_be_viewed_by(user_id, is_admin):
        return jsonify({'error': '无权访问该工具'}), 403

    if tool.is_publicly_listed:
        try:
            tool.view_count = Tool.view_count + 1
            track_event(tool.id, 'VIEW', user_id=user_id, request=request)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f"更新工具 {tool.id} 浏览量失败: {e}")

    reviews = ToolReview.query.options(joinedload(ToolReview.user)).filter(
        ToolReview.tool_id == tool.id
    ).order_by(ToolReview.created_at.desc(), ToolReview.id.desc()).all()

    data = tool.to_dict()
    data['reviews'] = [review.to_dict() for review in reviews]
    data['owner'] = tool.owner.to_public_dict() if tool.owner else None
    review_count, average_rating = tool.review_summary()
    data['review_count'] = review_count
    data['average_rating'] = average_rating
    return jsonify(data)


@tools_bp.route('/<int:tool_id>', methods=['GET'])
def get_tool(tool_id):
    """获取特定工具详情 (按 ID)"""
    tool = db.session.get(Tool, tool_id)
    if not tool:
        return jsonify({'error': '找不到指定的工具'}), 404
    return _tool_detail_response(tool)


@tools_bp.route('/slug/<string:slug>', methods=['GET'])
def get_tool_by_slug(slug):
    """获取特定工具详情 (按 slug)"""
    tool = Tool.query.filter_by(slug=slug).first()
    if not tool:
        return jsonify({'error': '找不到指定的工具'}), 404
    return _tool_detail_response(tool)


@tools_bp.route('/<int:tool_id>', methods=['PUT'])
@jwt_required()
def update_tool(tool_id):
    """更新工具信息，仅所有者可操作"""
    tool = db.session.get(Tool, tool_id)
    if not tool:
        return jsonify({'error': '找不到指定的工具'}), 404
    if tool.owner_id != current_user_id():
        return jsonify({'error': '无权修改该工具'}), 403

    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        return jsonify({'error': '请提供要更新的数据'}), 400

    try:
        fields = validate_tool_fields(data, allow_status=True)
    except ToolPayloadError as e:
        return jsonify({'error': str(e)}), 400

    # 名称变更时重新生成 slug
    if 'name' in fields:
        new_slug = slugify(fields['name'])
        if not new_slug:
            return jsonify({'error': '工具名称必须包含字母或数字'}), 400
        if slug_exists(new_slug, Tool, exclude_id=tool.id):
            return jsonify({'error': '同名工具已存在'}), 400
        tool.slug = new_slug

    for key, value in fields.items():
        setattr(tool, key, value)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': '同名工具已存在'}), 400

    return jsonify(tool.to_dict())


@tools_bp.route('/<int:tool_id>', methods=['DELETE'])
@jwt_required()
def delete_tool(tool_id):
    """删除工具 (连同媒体、评论和分析数据)，仅所有者可操作"""
    tool = db.session.get(Tool, tool_id)
    if not tool:
        return jsonify({'error': '找不到指定的工具'}), 404
    if tool.owner_id != current_user_id():
        return jsonify({'error': '无权删除该工具'}), 403

    db.session.delete(tool)
    db.session.commit()
    current_app.logger.info(f"工具 {tool_id} 已被所有者删除")

    return '', 204
