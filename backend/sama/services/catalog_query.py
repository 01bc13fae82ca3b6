"""
目录检索查询组装服务。

把请求中可选的检索/筛选/排序/分页参数转换为一次针对工具表的 SQLAlchemy 查询，
并把结果行整理成带有评论聚合字段的响应数据。

规则:
- 各筛选条件之间为 AND 关系；参数缺失时对应条件整体省略，不加默认谓词。
- 公开接口只返回 APPROVED 且 PUBLIC 的工具；管理员审核接口传 include_unpublished=True。
- sort_by 不在白名单内时静默回退为 created_at，不视为错误。
- per_page 超过上限时截断为上限，page 非正数或缺失时按 1 处理。
- 分页窗口为闭区间 [(page-1)*per_page, page*per_page-1]；page 大到偏移量超出数据库整数范围时返回空页。
- 标签按列表元素匹配 (关键词子串、tags/tech_stack 整值)，均不区分大小写。

注意: 如果新增、删除或修改功能，必须在这开头的注释中同步修改，如发现功能与注释描述不同，也可以在确定后修改。
"""
import logging
import math

from sqlalchemy import or_, func, select
from sqlalchemy.orm import joinedload, selectinload

from sama import db
from sama.models import Tool, Category, AnalyticsEvent
from sama.models.tool import PRICING_MODELS, TOOL_STATUSES

logger = logging.getLogger(__name__)

DEFAULT_SORT = 'created_at'

# average_rating / rating 都是 rating_average 列的别名
SORT_COLUMNS = {
    'created_at': 'created_at',
    'updated_at': 'updated_at',
    'name': 'name',
    'average_rating': 'rating_average',
    'rating_average': 'rating_average',
    'rating': 'rating_average',
    'usage_count': 'usage_count',
}

TRUE_VALUES = ('true', '1', 'yes', 'on')

LIKE_ESCAPE = '\\'

# 64 位有符号整数上限，OFFSET/LIMIT 超出后数据库直接报错
MAX_SQL_INTEGER = 2 ** 63 - 1


class SearchParamError(ValueError):
    """请求参数校验失败，路由层转换为 400 响应"""


def escape_like(value):
    return (value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
                 .replace('%', LIKE_ESCAPE + '%')
                 .replace('_', LIKE_ESCAPE + '_'))


def _parse_list(args, key):
    """同时支持重复参数 (?tags=a&tags=b) 和逗号分隔 (?tags=a,b)"""
    values = []
    for raw in args.getlist(key):
        values.extend(part.strip() for part in raw.split(','))
    return [value for value in values if value]


def _parse_positive_int(raw, default):
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return value if value >= 1 else default


def _parse_float(args, key):
    raw = args.get(key)
    if raw is None or raw.strip() == '':
        return None
    try:
        value = float(raw)
    except ValueError:
        raise SearchParamError(f'{key} 必须是数字')
    if not math.isfinite(value):
        raise SearchParamError(f'{key} 必须是有限数字')
    return value


class SearchParams:
    """一次目录检索的全部参数 (已完成校验和默认值处理)"""

    def __init__(self, q=None, category=None, pricing_models=None, tech_stack=None, tags=None,
                 rating_min=None, rating_max=None, featured_only=False, status=None,
                 sort_by=DEFAULT_SORT, sort_order='desc', page=1, per_page=20):
        self.q = q
        self.category = category
        self.pricing_models = pricing_models or []
        self.tech_stack = tech_stack or []
        self.tags = tags or []
        self.rating_min = rating_min
        self.rating_max = rating_max
        self.featured_only = featured_only
        self.status = status
        self.sort_by = sort_by
        self.sort_order = sort_order
        self.page = page
        self.per_page = per_page

    @classmethod
    def from_args(cls, args, default_per_page=20, max_per_page=50, allow_status=False):
        """
        从请求参数 (werkzeug MultiDict) 构建 SearchParams

        参数:
            args: request.args
            default_per_page (int): per_page 缺失或非法时使用的默认值
            max_per_page (int): per_page 上限，超出部分截断而不是报错
            allow_status (bool): 是否接受 status 筛选 (仅管理员审核接口)

        异常:
            SearchParamError: 定价模式、评分范围或状态取值非法
        """
        q = (args.get('q') or '').strip() or None
        category = (args.get('category') or '').strip() or None

        pricing_models = _parse_list(args, 'pricing_model')
        invalid = [model for model in pricing_models if model not in PRICING_MODELS]
        if invalid:
            raise SearchParamError(f"无效的定价模式: {', '.join(invalid)}")

        rating_min = _parse_float(args, 'rating_min')
        rating_max = _parse_float(args, 'rating_max')
        if rating_min is not None and rating_max is not None and rating_min > rating_max:
            raise SearchParamError('rating_min 不能大于 rating_max')

        status = None
        if allow_status:
            status = (args.get('status') or '').strip() or None
            if status is not None and status not in TOOL_STATUSES:
                raise SearchParamError(f'无效的状态: {status}')

        sort_by = args.get('sort_by', DEFAULT_SORT)
        if sort_by not in SORT_COLUMNS:
            sort_by = DEFAULT_SORT
        sort_order = 'asc' if args.get('sort_order') == 'asc' else 'desc'

        page = _parse_positive_int(args.get('page'), 1)
        per_page = min(_parse_positive_int(args.get('per_page'), default_per_page), max_per_page)

        return cls(
            q=q,
            category=category,
            pricing_models=pricing_models,
            tech_stack=_parse_list(args, 'tech_stack'),
            tags=_parse_list(args, 'tags'),
            rating_min=rating_min,
            rating_max=rating_max,
            featured_only=(args.get('featured_only') or '').lower() in TRUE_VALUES,
            status=status,
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            per_page=per_page,
        )

    @property
    def offset(self):
        return (self.page - 1) * self.per_page

    @property
    def window(self):
        """分页窗口 (闭区间)"""
        return self.offset, self.page * self.per_page - 1

    def filters_applied(self):
        return {
            'category': self.category,
            'pricing_model': self.pricing_models or None,
            'tech_stack': self.tech_stack or None,
            'tags': self.tags or None,
            'rating_range': [self.rating_min, self.rating_max],
            'featured_only': self.featured_only
        }


def json_elements(column):
    """
    把 JSON 字符串列表列展开为表值函数，结果列名为 value。

    PostgreSQL 使用 json_array_elements_text，SQLite 使用 json_each；
    在外层工具查询中引用时自动关联到当前行。
    """
    if db.engine.dialect.name == 'postgresql':
        return func.json_array_elements_text(column).table_valued('value')
    return func.json_each(column).table_valued('value')


def json_array_overlaps(column, values):
    """
    JSON 字符串列表列与给定值集合有交集 (任一值出现在列表中即匹配)。

    按列表元素整体比较，不区分大小写，在 PostgreSQL 和 SQLite 上行为一致。
    """
    elements = json_elements(column)
    lowered = sorted({value.lower() for value in values})
    return select(elements.c.value).where(func.lower(elements.c.value).in_(lowered)).exists()


def json_array_contains_text(column, q):
    """JSON 字符串列表中任一元素包含 q (不区分大小写的子串匹配)"""
    elements = json_elements(column)
    pattern = f'%{escape_like(q)}%'
    return select(elements.c.value).where(elements.c.value.ilike(pattern, escape=LIKE_ESCAPE)).exists()


def text_match(q):
    """名称、描述或任一标签中包含 q (不区分大小写的子串匹配)"""
    pattern = f'%{escape_like(q)}%'
    return or_(
        Tool.name.ilike(pattern, escape=LIKE_ESCAPE),
        Tool.description.ilike(pattern, escape=LIKE_ESCAPE),
        json_array_contains_text(Tool.tags, q),
    )


def public_tools_filter(query):
    return query.filter(Tool.status == 'APPROVED', Tool.visibility == 'PUBLIC')


def build_tool_query(params, include_unpublished=False):
    """按参数组装工具查询 (未分页)"""
    query = Tool.query

    if not include_unpublished:
        query = public_tools_filter(query)
    elif params.status:
        query = query.filter(Tool.status == params.status)

    if params.q:
        query = query.filter(text_match(params.q))

    # 分类既可以是 ID，也可以是 slug
    if params.category:
        if params.category.isdigit():
            query = query.filter(Tool.category_id == int(params.category))
        else:
            query = query.join(Tool.category).filter(Category.slug == params.category)

    if params.pricing_models:
        query = query.filter(Tool.pricing_model.in_(params.pricing_models))

    if params.tech_stack:
        query = query.filter(json_array_overlaps(Tool.tech_stack, params.tech_stack))

    if params.tags:
        query = query.filter(json_array_overlaps(Tool.tags, params.tags))

    if params.rating_min is not None:
        query = query.filter(Tool.rating_average >= params.rating_min)

    if params.rating_max is not None:
        query = query.filter(Tool.rating_average <= params.rating_max)

    if params.featured_only:
        query = query.filter(Tool.featured.is_(True))

    # 应用排序，id 作为次级排序保证分页稳定
    order_column = getattr(Tool, SORT_COLUMNS.get(params.sort_by, DEFAULT_SORT))
    if params.sort_order == 'asc':
        query = query.order_by(order_column.asc(), Tool.id.asc())
    else:
        query = query.order_by(order_column.desc(), Tool.id.desc())

    return query


def run_search(params, include_unpublished=False):
    """
    执行检索

    返回:
        tuple: (当前页的工具列表, 不受分页影响的总数)
    """
    query = build_tool_query(params, include_unpublished=include_unpublished)

    total = query.order_by(None).count()
    if params.offset + params.per_page > MAX_SQL_INTEGER:
        # 偏移量超出数据库整数范围，结果必然为空页
        tools = []
    else:
        tools = query.options(
            joinedload(Tool.owner),
            joinedload(Tool.category),
            selectinload(Tool.media),
            selectinload(Tool.reviews),
        ).offset(params.offset).limit(params.per_page).all()

    logger.info(
        f"[搜索日志] q={params.q!r} page={params.page} per_page={params.per_page} "
        f"sort={params.sort_by}/{params.sort_order} 命中 {total} 条，本页 {len(tools)} 条"
    )
    return tools, total


def analytics_counts(tool_ids):
    """按工具统计分析事件数 {tool_id: count}"""
    if not tool_ids:
        return {}
    rows = db.session.query(AnalyticsEvent.tool_id, func.count(AnalyticsEvent.id)).filter(
        AnalyticsEvent.tool_id.in_(tool_ids)
    ).group_by(AnalyticsEvent.tool_id).all()
    return {tool_id: count for tool_id, count in rows}


def serialize_search_tool(tool, analytics_count=0):
    """工具行序列化，review_count / average_rating 由已加载的评论行现场计算"""
    data = tool.to_dict()
    review_count, average_rating = tool.review_summary()
    data['review_count'] = review_count
    data['average_rating'] = average_rating
    data['analytics_count'] = analytics_count
    return data


def serialize_search_results(tools):
    counts = analytics_counts([tool.id for tool in tools])
    return [serialize_search_tool(tool, counts.get(tool.id, 0)) for tool in tools]


def tool_suggestions(q, limit=5):
    """名称或任一标签包含 q 的公开工具，用于结果过少时给出提示"""
    pattern = f'%{escape_like(q)}%'
    rows = public_tools_filter(db.session.query(Tool.name, Tool.tags)).filter(
        or_(
            Tool.name.ilike(pattern, escape=LIKE_ESCAPE),
            json_array_contains_text(Tool.tags, q),
        )
    ).order_by(Tool.name).limit(limit).all()
    return [{'name': name, 'tags': tags or []} for name, tags in rows]
