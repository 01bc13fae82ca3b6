# backend/sama/models/category.py
"""
定义分类模型 (Category)。
用于组织工具目录的分类体系，支持单父级的层级结构，在检索中仅作为筛选/分组键。

注意: 如果新增、删除或修改功能，必须在这开头的注释中同步修改，如发现功能与注释描述不同，也可以在确定后修改。
"""
from sama import db
from datetime import datetime

class Category(db.Model):
    __tablename__ = 'categories'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, index=True)
    slug = db.Column(db.String(100), nullable=True, unique=True, index=True)
    description = db.Column(db.Text, nullable=True)
    icon = db.Column(db.String(100), nullable=True)
    parent_id = db.Column(db.Integer, db.ForeignKey('categories.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # 关系
    parent = db.relationship('Category', remote_side=[id], backref=db.backref('children', lazy='dynamic'))
    tools = db.relationship('Tool', back_populates='category', lazy='dynamic') # Note: Tool model is in another file

    def to_summary_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'icon': self.icon
        }

    def to_dict(self, tool_count=None):
        data = {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'description': self.description,
            'icon': self.icon,
            'parent_id': self.parent_id,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
        if tool_count is not None:
            data['tool_count'] = tool_count
        return data

    def __repr__(self):
        return f'<Category {self.name}>'
