"""
搜索相关 API 端点

- /tools: 目录检索 (与 /api/tools 相同的筛选、排序、分页规则)，额外返回结果过少时的名称提示、
  全局分面统计和本次查询的参数回显。
- /suggest: 输入联想，按 type 返回工具、分类、标签、技术栈四类建议。
  工具建议先用子串匹配取候选，再按名称与输入的 Jaro-Winkler 相似度排序。

注意: 如果新增、删除或修改功能，必须在这开头的注释中同步修改，如发现功能与注释描述不同，也可以在确定后修改。
"""
from flask import Blueprint, request, jsonify, current_app
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
import jellyfish # 用于计算 Jaro-Winkler 相似度

from sama import db
from sama.models import Tool, Category
from sama.services.catalog_query import (
    SearchParams, SearchParamError, run_search, serialize_search_results, tool_suggestions,
    public_tools_filter, escape_like, LIKE_ESCAPE,
)
from sama.services.facets import (
    safe_facet, popular_tags, popular_tech_stack, pricing_model_counts, category_facets,
)

search_bp = Blueprint('search_api', __name__) # 蓝图名称保持唯一

SUGGEST_TYPES = ('all', 'tools', 'categories', 'tags', 'tech_stack')
SUGGEST_MIN_LENGTH = 2
TOOL_SUGGEST_LIMIT = 5
TOOL_CANDIDATE_LIMIT = 50
CATEGORY_SUGGEST_LIMIT = 3
TERM_SUGGEST_LIMIT = 5
POPULAR_POOL_SIZE = 50
DESCRIPTION_PREVIEW_LENGTH = 100
# 结果少于该数量时才给出名称提示
SUGGESTION_THRESHOLD = 5


def calculate_similarity(text1, text2):
    """
    计算两段文本的 Jaro-Winkler 相似度。
    确保输入是字符串，且转换为小写以忽略大小写。
    """
    if not text1 or not text2:
        return 0.0
    return jellyfish.jaro_winkler_similarity(str(text1).lower(), str(text2).lower())


def _preview(text):
    if not text:
        return ''
    if len(text) <= DESCRIPTION_PREVIEW_LENGTH:
        return text
    return text[:DESCRIPTION_PREVIEW_LENGTH] + '...'


@search_bp.route('/tools', methods=['GET'])
def search_tools():
    """目录检索，附带提示、分面和查询回显"""
    try:
        params = SearchParams.from_args(
            request.args,
            default_per_page=current_app.config['SEARCH_DEFAULT_PER_PAGE'],
            max_per_page=current_app.config['SEARCH_MAX_PER_PAGE'],
        )
    except SearchParamError as e:
        current_app.logger.warning(f"[搜索日志] 参数错误: {e}")
        return jsonify({'error': str(e)}), 400

    try:
        tools, total = run_search(params)
        suggestions = []
        if params.q and len(tools) < SUGGESTION_THRESHOLD:
            suggestions = tool_suggestions(params.q, limit=TOOL_SUGGEST_LIMIT)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"[搜索日志] 处理搜索请求时发生错误: {e}", exc_info=True)
        return jsonify({'error': '处理搜索请求时发生内部错误'}), 500

    limit = current_app.config['FACET_LIMIT']
    facets = {
        'popular_tags': safe_facet('popular_tags', popular_tags, limit),
        'popular_tech': safe_facet('popular_tech', popular_tech_stack, limit),
        'pricing_models': safe_facet('pricing_models', pricing_model_counts),
        'categories': safe_facet('categories', category_facets),
    }

    return jsonify({
        'tools': serialize_search_results(tools),
        'total_count': total,
        'page': params.page,
        'per_page': params.per_page,
        'suggestions': suggestions,
        'facets': facets,
        'query_info': {
            'query': params.q,
            'filters_applied': params.filters_applied()
        }
    })


def _suggest_tools(query):
    pattern = f'%{escape_like(query)}%'
    candidates = public_tools_filter(Tool.query).filter(
        or_(
            Tool.name.ilike(pattern, escape=LIKE_ESCAPE),
            Tool.description.ilike(pattern, escape=LIKE_ESCAPE),
        )
    ).order_by(Tool.id).limit(TOOL_CANDIDATE_LIMIT).all()

    scored = [(calculate_similarity(query, tool.name), tool) for tool in candidates]
    # 相似度相同时按名称排序
    scored.sort(key=lambda item: (-item[0], item[1].name))
    return [
        {
            'id': tool.id,
            'name': tool.name,
            'description': _preview(tool.description),
            'slug': tool.slug,
            'score': round(score, 4),
            'type': 'tool'
        }
        for score, tool in scored[:TOOL_SUGGEST_LIMIT]
    ]


def _suggest_categories(query):
    pattern = f'%{escape_like(query)}%'
    categories = Category.query.filter(
        or_(
            Category.name.ilike(pattern, escape=LIKE_ESCAPE),
            Category.description.ilike(pattern, escape=LIKE_ESCAPE),
        )
    ).order_by(Category.name).limit(CATEGORY_SUGGEST_LIMIT).all()
    return [
        {
            'id': category.id,
            'name': category.name,
            'description': category.description,
            'slug': category.slug,
            'type': 'category'
        }
        for category in categories
    ]


def _suggest_terms(entries, key, query, kind):
    """从热门列表中筛选包含 query 的词条"""
    lowered = query.lower()
    matched = [entry for entry in entries if lowered in entry[key].lower()]
    return [
        {'name': entry[key], 'count': entry['count'], 'type': kind}
        for entry in matched[:TERM_SUGGEST_LIMIT]
    ]


@search_bp.route('/suggest', methods=['GET'])
def suggest():
    """输入联想"""
    query = (request.args.get('q') or '').strip()
    suggest_type = request.args.get('type', 'all')
    if suggest_type not in SUGGEST_TYPES:
        return jsonify({'error': f"type 只能是 {', '.join(SUGGEST_TYPES)}"}), 400

    suggestions = {'tools': [], 'categories': [], 'tags': [], 'tech_stack': []}
    if len(query) < SUGGEST_MIN_LENGTH:
        return jsonify(suggestions)

    try:
        if suggest_type in ('all', 'tools'):
            suggestions['tools'] = _suggest_tools(query)
        if suggest_type in ('all', 'categories'):
            suggestions['categories'] = _suggest_categories(query)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"[搜索日志] 处理联想请求时发生错误: {e}", exc_info=True)
        return jsonify({'error': '处理联想请求时发生内部错误'}), 500

    if suggest_type in ('all', 'tags'):
        tags = safe_facet('popular_tags', popular_tags, POPULAR_POOL_SIZE)
        suggestions['tags'] = _suggest_terms(tags, 'name', query, 'tag')
    if suggest_type in ('all', 'tech_stack'):
        tech = safe_facet('popular_tech', popular_tech_stack, POPULAR_POOL_SIZE)
        suggestions['tech_stack'] = _suggest_terms(tech, 'tech', query, 'tech')

    current_app.logger.info(
        f"[搜索日志] 联想 q='{query}' type={suggest_type}: "
        + ', '.join(f"{key}={len(value)}" for key, value in suggestions.items())
    )
    return jsonify(suggestions)
