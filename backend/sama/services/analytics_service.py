"""
工具分析数据服务。

- track_event: 从当前请求构建一条分析事件 (不提交事务，由调用方统一提交)。
- parse_period: 解析并校验统计区间，默认最近 N 天。
- get_tool_analytics: 取出区间内的原始事件和 API 使用记录，在内存中归约为
  汇总数据、按天分桶的明细、来源域名排行 (前 10) 和各端点调用总数。

单次请求只处理一个有界的结果集，不涉及窗口或流式计算。

注意: 如果新增、删除或修改功能，必须在这开头的注释中同步修改，如发现功能与注释描述不同，也可以在确定后修改。
"""
import logging
from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone
from urllib.parse import urlparse

from sama import db
from sama.models import AnalyticsEvent, ApiUsage

logger = logging.getLogger(__name__)

# 事件类型到按天统计字段的映射
EVENT_FIELDS = {
    'VIEW': 'views',
    'CLICK': 'clicks',
    'API_CALL': 'api_calls',
    'SIGNUP': 'signups',
    'PURCHASE': 'purchases',
}

TOP_REFERRER_LIMIT = 10
DIRECT_REFERRER = 'Direct'


class AnalyticsParamError(ValueError):
    """统计区间参数非法"""


def track_event(tool_id, event_type, user_id=None, metadata=None, request=None):
    """构建并加入会话一条分析事件，request 存在时记录 IP、UA 和来源页"""
    event = AnalyticsEvent(
        tool_id=tool_id,
        user_id=user_id,
        event_type=event_type,
        event_metadata=metadata,
    )
    if request is not None:
        forwarded_for = request.headers.get('X-Forwarded-For', '')
        event.ip_address = forwarded_for.split(',')[0].strip() or request.remote_addr
        event.user_agent = (request.headers.get('User-Agent') or '')[:255] or None
        event.referrer = (request.headers.get('Referer') or '')[:500] or None
    db.session.add(event)
    return event


def _parse_datetime(raw, name, end_of_day=False):
    value = raw.strip()
    # Python 3.10 及以下的 fromisoformat 不接受 'Z' 后缀
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise AnalyticsParamError(f'{name} 不是有效的 ISO-8601 日期')
    if parsed.tzinfo is not None:
        # 数据库中存储的是 naive UTC 时间
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    if end_of_day and len(value) == 10:
        # 只给日期的结束时间包含当天全部事件
        parsed = parsed + timedelta(days=1) - timedelta(microseconds=1)
    return parsed


def parse_period(start_raw=None, end_raw=None, default_days=30, now=None):
    """
    解析统计区间

    参数:
        start_raw (str, optional): 开始时间，缺省为 end 之前 default_days 天
        end_raw (str, optional): 结束时间，缺省为当前时间
        default_days (int): 默认统计天数
        now (datetime, optional): 当前时间 (naive UTC)，便于测试

    返回:
        tuple: (start, end) naive UTC datetime

    异常:
        AnalyticsParamError: 日期格式错误或开始时间晚于结束时间
    """
    now = now or datetime.utcnow()
    end = _parse_datetime(end_raw, 'end_date', end_of_day=True) if end_raw else now
    start = _parse_datetime(start_raw, 'start_date') if start_raw else end - timedelta(days=default_days)
    if start > end:
        raise AnalyticsParamError('start_date 不能晚于 end_date')
    return start, end


def summarize_events(events):
    counts = Counter(event.event_type for event in events)
    unique_users = {event.user_id for event in events if event.user_id is not None}
    return {
        'total_events': len(events),
        'total_views': counts.get('VIEW', 0),
        'total_clicks': counts.get('CLICK', 0),
        'total_api_calls': counts.get('API_CALL', 0),
        'total_signups': counts.get('SIGNUP', 0),
        'total_purchases': counts.get('PURCHASE', 0),
        'unique_users': len(unique_users),
    }


def daily_breakdown(events):
    """按自然日 (UTC) 分桶统计各类事件数，按日期升序返回"""
    buckets = {}
    for event in events:
        date_key = event.created_at.date().isoformat()
        bucket = buckets.get(date_key)
        if bucket is None:
            bucket = {'date': date_key}
            bucket.update({field: 0 for field in EVENT_FIELDS.values()})
            buckets[date_key] = bucket
        field = EVENT_FIELDS.get(event.event_type)
        if field:
            bucket[field] += 1
    return [buckets[date_key] for date_key in sorted(buckets)]


def _referrer_domain(referrer):
    try:
        hostname = urlparse(referrer).hostname
    except ValueError:
        hostname = None
    return hostname or DIRECT_REFERRER


def top_referrers(referrers, limit=TOP_REFERRER_LIMIT):
    counter = Counter(_referrer_domain(referrer) for referrer in referrers if referrer)
    ranked = sorted(counter.items(), key=lambda item: (-item[1], item[0]))
    return [{'domain': domain, 'count': count} for domain, count in ranked[:limit]]


def endpoint_usage(usage_rows):
    totals = defaultdict(int)
    for row in usage_rows:
        totals[row.endpoint] += row.request_count or 0
    return dict(totals)


def get_tool_analytics(tool_id, start, end):
    """查询区间内的事件和 API 使用记录并归约为仪表盘数据"""
    events = AnalyticsEvent.query.filter(
        AnalyticsEvent.tool_id == tool_id,
        AnalyticsEvent.created_at >= start,
        AnalyticsEvent.created_at <= end,
    ).order_by(AnalyticsEvent.created_at.asc()).all()

    usage_rows = ApiUsage.query.filter(
        ApiUsage.tool_id == tool_id,
        ApiUsage.created_at >= start,
        ApiUsage.created_at <= end,
    ).all()

    logger.info(f"[分析日志] 工具 {tool_id} 区间 {start} ~ {end}: {len(events)} 个事件, {len(usage_rows)} 条 API 记录")

    result = summarize_events(events)
    result.update({
        'daily_breakdown': daily_breakdown(events),
        'top_referrers': top_referrers(event.referrer for event in events),
        'endpoint_usage': endpoint_usage(usage_rows),
        'period': {
            'start_date': start.isoformat(),
            'end_date': end.isoformat()
        }
    })
    return result
