"""
分面统计服务。

为检索页的筛选面板提供聚合数据: 分类列表及工具数、热门标签、热门技术栈、定价模式分布。
统计范围是全部 APPROVED 且 PUBLIC 的工具，与当前请求的筛选条件无关 (全局热度)。
单个分面计算失败时记录警告并返回空列表，不影响整个请求。

注意: 如果新增、删除或修改功能，必须在这开头的注释中同步修改，如发现功能与注释描述不同，也可以在确定后修改。
"""
import logging
from collections import Counter

from sqlalchemy import func, and_
from sqlalchemy.exc import SQLAlchemyError

from sama import db
from sama.models import Tool, Category
from sama.services.catalog_query import public_tools_filter

logger = logging.getLogger(__name__)


def _count_list_values(column, limit):
    """统计 JSON 列表列中各取值在公开工具中出现的次数，返回前 limit 个"""
    counter = Counter()
    for values, in public_tools_filter(db.session.query(column)).all():
        if isinstance(values, list):
            # Filter out any non-string items just in case
            counter.update(value for value in values if isinstance(value, str))
    # 次数相同时按名称排序，保证结果稳定
    ranked = sorted(counter.items(), key=lambda item: (-item[1], item[0]))
    return ranked[:limit]


def popular_tags(limit=20):
    return [{'name': name, 'count': count} for name, count in _count_list_values(Tool.tags, limit)]


def popular_tech_stack(limit=20):
    return [{'tech': name, 'count': count} for name, count in _count_list_values(Tool.tech_stack, limit)]


def pricing_model_counts():
    rows = public_tools_filter(
        db.session.query(Tool.pricing_model, func.count(Tool.id))
    ).group_by(Tool.pricing_model).order_by(func.count(Tool.id).desc(), Tool.pricing_model).all()
    return [{'model': model, 'count': count} for model, count in rows]


def category_tool_counts():
    """每个分类下公开工具的数量 {category_id: count}，没有工具的分类计为 0"""
    rows = db.session.query(Category.id, func.count(Tool.id)).outerjoin(
        Tool,
        and_(
            Tool.category_id == Category.id,
            Tool.status == 'APPROVED',
            Tool.visibility == 'PUBLIC',
        )
    ).group_by(Category.id).all()
    return {category_id: count for category_id, count in rows}


def category_facets():
    counts = category_tool_counts()
    categories = Category.query.order_by(Category.name).all()
    return [
        {
            'id': category.id,
            'name': category.name,
            'slug': category.slug,
            'count': counts.get(category.id, 0)
        }
        for category in categories
    ]


def safe_facet(name, builder, *args):
    """执行单个分面计算，数据库异常时回滚并降级为空列表"""
    try:
        return builder(*args)
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.warning(f"[分面日志] 计算分面 {name} 失败，返回空列表: {e}")
        return []


def collect_facets(limit=20):
    return {
        'categories': safe_facet('categories', category_facets),
        'tags': safe_facet('tags', popular_tags, limit),
        'pricing_models': safe_facet('pricing_models', pricing_model_counts),
        'tech_stack': safe_facet('tech_stack', popular_tech_stack, limit),
    }
