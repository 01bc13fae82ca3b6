"""
此模块定义了管理员审核相关的 API 端点。

主要功能:
- 审核列表: 使用与目录检索相同的筛选、排序、分页规则，但不限制状态和可见性，可按 status 筛选。
- 审核操作: 修改工具的状态、可见性和精选标记；首次审核通过时写入 published_at。

所有端点都需要 JWT 中带有 is_admin 声明。
使用 Flask 蓝图: admin_bp

注意: 如果新增、删除或修改功能，必须在这开头的注释中同步修改，如发现功能与注释描述不同，也可以在确定后修改。
"""
from datetime import datetime

from flask import Blueprint, jsonify, request, current_app

from sama import db
from sama.models import Tool
from sama.models.tool import TOOL_STATUSES, TOOL_VISIBILITIES
from sama.services.catalog_query import SearchParams, SearchParamError, run_search, serialize_search_results
from sama.utils.auth_utils import admin_required, current_user_id

admin_bp = Blueprint('admin', __name__)


@admin_bp.route('/tools', methods=['GET'])
@admin_required
def get_moderation_tools():
    """
    获取待审核/全部工具列表

    Query 参数与 /api/tools 相同，另外支持 status 筛选。
    """
    try:
        params = SearchParams.from_args(
            request.args,
            default_per_page=current_app.config['SEARCH_DEFAULT_PER_PAGE'],
            max_per_page=current_app.config['SEARCH_MAX_PER_PAGE'],
            allow_status=True,
        )
    except SearchParamError as e:
        return jsonify({'error': str(e)}), 400

    tools, total = run_search(params, include_unpublished=True)
    return jsonify({
        'tools': serialize_search_results(tools),
        'total_count': total,
        'page': params.page,
        'per_page': params.per_page
    })


@admin_bp.route('/tools/<int:tool_id>/status', methods=['PUT'])
@admin_required
def update_tool_status(tool_id):
    """
    修改工具审核状态

    请求体:
        status (str): 新状态
        visibility (str, optional): 新可见性
        featured (bool, optional): 是否精选
    """
    tool = db.session.get(Tool, tool_id)
    if not tool:
        return jsonify({'error': '找不到指定的工具'}), 404

    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not data:
        return jsonify({'error': '请提供要更新的数据'}), 400

    status = data.get('status')
    if 'status' in data and status not in TOOL_STATUSES:
        return jsonify({'error': f'无效的状态: {status}'}), 400

    visibility = data.get('visibility')
    if 'visibility' in data and visibility not in TOOL_VISIBILITIES:
        return jsonify({'error': f'无效的可见性: {visibility}'}), 400

    featured = data.get('featured')
    if 'featured' in data and not isinstance(featured, bool):
        return jsonify({'error': 'featured 必须是布尔值'}), 400

    if 'status' in data:
        tool.status = status
        if status == 'APPROVED' and tool.published_at is None:
            tool.published_at = datetime.utcnow()
    if 'visibility' in data:
        tool.visibility = visibility
    if 'featured' in data:
        tool.featured = featured

    db.session.commit()
    current_app.logger.info(
        f"管理员 {current_user_id()} 将工具 {tool_id} 更新为 status={tool.status}, visibility={tool.visibility}"
    )
    return jsonify(tool.to_dict())
