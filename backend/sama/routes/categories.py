"""
此模块定义了与分类 (Category) 相关的 API 端点。

主要功能:
- 获取全部分类 (按名称排序)，附带每个分类下公开工具的数量。
- 获取指定 ID 的分类。
- 管理员创建新分类，slug 冲突时自动追加数字后缀。
- 支持层级分类 (通过 parent_id)。

依赖模型: Category, Tool
使用 Flask 蓝图: categories_bp

注意: 如果新增、删除或修改功能，必须在这开头的注释中同步修改，如发现功能与注释描述不同，也可以在确定后修改。
"""
from flask import Blueprint, jsonify, request, current_app

from sama import db
from sama.models import Category
from sama.services.facets import category_tool_counts
from sama.utils.auth_utils import admin_required
from sama.utils.slug_generator import generate_unique_slug, slugify

categories_bp = Blueprint('categories', __name__)

@categories_bp.route('/', methods=['GET'])
def get_categories():
    """获取所有分类"""
    counts = category_tool_counts()
    categories = Category.query.order_by(Category.name).all()
    return jsonify([category.to_dict(tool_count=counts.get(category.id, 0)) for category in categories])

@categories_bp.route('/<int:category_id>', methods=['GET'])
def get_category(category_id):
    """获取指定ID的分类"""
    category = db.session.get(Category, category_id)
    if not category:
        return jsonify({'error': '找不到指定的分类'}), 404
    return jsonify(category.to_dict())

@categories_bp.route('/', methods=['POST'])
@admin_required
def create_category():
    """创建新分类 (仅管理员)"""
    data = request.get_json(silent=True)

    name = data.get('name') if isinstance(data, dict) else None
    if not isinstance(name, str) or not name.strip():
        return jsonify({'error': '分类名称不能为空'}), 400
    name = name.strip()
    if not slugify(name):
        return jsonify({'error': '分类名称必须包含字母或数字'}), 400

    parent_id = data.get('parent_id')
    if parent_id is not None and (not isinstance(parent_id, int) or db.session.get(Category, parent_id) is None):
        return jsonify({'error': '父分类不存在'}), 400

    category = Category(
        name=name,
        slug=generate_unique_slug(name, Category),
        description=data.get('description'),
        parent_id=parent_id,
        icon=data.get('icon')
    )

    db.session.add(category)
    db.session.commit()
    current_app.logger.info(f"管理员创建了分类 {category.id} ({category.slug})")

    return jsonify(category.to_dict(tool_count=0)), 201
