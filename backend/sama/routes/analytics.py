"""
此模块定义了工具分析数据相关的 API 端点。

主要功能:
- 所有者查看自己工具在指定时间区间内的分析数据 (汇总、按天明细、来源排行、端点调用量)。
- 公开的事件上报接口，只接受 CLICK / API_CALL / PURCHASE，带频率限制。
  API_CALL 附带 endpoint 时额外写入一条 ApiUsage 记录并累加工具的 usage_count。

依赖模型: Tool, ApiUsage
外部服务: analytics_service
使用 Flask 蓝图: analytics_bp

注意: 如果新增、删除或修改功能，必须在这开头的注释中同步修改，如发现功能与注释描述不同，也可以在确定后修改。
"""
from flask import Blueprint, jsonify, request, current_app
from flask_jwt_extended import jwt_required

from sama import db, limiter
from sama.config import EVENT_TRACKING_LIMIT
from sama.models import Tool, ApiUsage
from sama.services.analytics_service import (
    AnalyticsParamError, parse_period, get_tool_analytics, track_event,
)
from sama.utils.auth_utils import current_user_id, get_optional_identity

analytics_bp = Blueprint('analytics', __name__)

# 可由客户端上报的事件类型，VIEW 和 SIGNUP 由服务端在对应操作中记录
TRACKABLE_EVENTS = ('CLICK', 'API_CALL', 'PURCHASE')


@analytics_bp.route('/<int:tool_id>', methods=['GET'])
@jwt_required()
def get_analytics(tool_id):
    """获取工具分析数据，仅所有者可查看"""
    tool = db.session.get(Tool, tool_id)
    if not tool:
        return jsonify({'error': '找不到指定的工具'}), 404
    if tool.owner_id != current_user_id():
        return jsonify({'error': '无权查看该工具的分析数据'}), 403

    try:
        start, end = parse_period(
            request.args.get('start_date'),
            request.args.get('end_date'),
            default_days=current_app.config['ANALYTICS_DEFAULT_DAYS'],
        )
    except AnalyticsParamError as e:
        return jsonify({'error': str(e)}), 400

    return jsonify(get_tool_analytics(tool_id, start, end))


@analytics_bp.route('/<int:tool_id>/events', methods=['POST'])
@limiter.limit(EVENT_TRACKING_LIMIT)
def record_event(tool_id):
    """上报一条工具事件，登录可选"""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'error': '请求体不能为空'}), 400

    event_type = data.get('event_type')
    if event_type not in TRACKABLE_EVENTS:
        return jsonify({'error': f"event_type 只能是 {', '.join(TRACKABLE_EVENTS)}"}), 400

    metadata = data.get('metadata')
    if metadata is not None and not isinstance(metadata, dict):
        return jsonify({'error': 'metadata 必须是对象'}), 400

    endpoint = data.get('endpoint')
    if endpoint is not None and (not isinstance(endpoint, str) or not endpoint.strip()):
        return jsonify({'error': 'endpoint 必须是非空字符串'}), 400

    tool = db.session.get(Tool, tool_id)
    if not tool:
        return jsonify({'error': '找不到指定的工具'}), 404

    user_id, _ = get_optional_identity()
    event = track_event(tool_id, event_type, user_id=user_id, metadata=metadata, request=request)

    if event_type == 'API_CALL' and endpoint:
        db.session.add(ApiUsage(
            tool_id=tool_id,
            user_id=user_id,
            endpoint=endpoint.strip()[:255],
            response_time_ms=data.get('response_time_ms') if isinstance(data.get('response_time_ms'), int) else None,
            status_code=data.get('status_code') if isinstance(data.get('status_code'), int) else None
        ))
        tool.usage_count = Tool.usage_count + 1

    db.session.commit()
    return jsonify(event.to_dict()), 201
