# backend/sama/models/tool.py
"""
定义工具模型 (Tool) 及其枚举取值。
用于存储目录中的 AI 微型 SaaS 工具，包括名称、slug、简介、各类链接、分类、标签、技术栈、
定价模式、审核状态、可见性以及聚合计数 (浏览量、使用量、评分均值、评分数)。

状态流转: 提交时为 DRAFT/PRIVATE，所有者可改为 PENDING_REVIEW，管理员审核为 APPROVED 等。
只有 APPROVED 且 PUBLIC 的工具会出现在公开检索结果中。

注意: 如果新增、删除或修改功能，必须在这开头的注释中同步修改，如发现功能与注释描述不同，也可以在确定后修改。
"""
from sama import db
from datetime import datetime

PRICING_MODELS = ('FREE', 'FREEMIUM', 'SUBSCRIPTION', 'PAY_PER_USE', 'ONE_TIME')
TOOL_STATUSES = ('DRAFT', 'PENDING_REVIEW', 'APPROVED', 'REJECTED', 'SUSPENDED')
TOOL_VISIBILITIES = ('PUBLIC', 'PRIVATE', 'UNLISTED')
API_TYPES = ('REST', 'GraphQL', 'WebSocket', 'gRPC', 'Other')
AUTH_TYPES = ('API_KEY', 'OAuth', 'JWT', 'Basic', 'None')

# 所有者自己可以设置的状态，其余状态只能由管理员审核设置
OWNER_SETTABLE_STATUSES = ('DRAFT', 'PENDING_REVIEW')

class Tool(db.Model):
    __tablename__ = 'tools'

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('profiles.id'), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False, index=True)
    slug = db.Column(db.String(120), nullable=False, unique=True, index=True)
    tagline = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    logo_url = db.Column(db.String(255), nullable=True)
    website_url = db.Column(db.String(255), nullable=False)
    demo_url = db.Column(db.String(255), nullable=True)
    documentation_url = db.Column(db.String(255), nullable=True)
    github_url = db.Column(db.String(255), nullable=True)
    api_endpoint = db.Column(db.String(255), nullable=True)
    category_id = db.Column(db.Integer, db.ForeignKey('categories.id'), nullable=True, index=True)
    tags = db.Column(db.JSON, nullable=False, default=list)  # 字符串列表
    tech_stack = db.Column(db.JSON, nullable=False, default=list)  # 字符串列表
    api_type = db.Column(db.String(20), nullable=True)
    authentication_type = db.Column(db.String(20), nullable=True)
    pricing_model = db.Column(db.String(20), nullable=False, default='FREE', index=True)
    pricing_details = db.Column(db.JSON, nullable=True)
    status = db.Column(db.String(20), nullable=False, default='DRAFT', index=True)
    visibility = db.Column(db.String(20), nullable=False, default='PRIVATE', index=True)
    featured = db.Column(db.Boolean, nullable=False, default=False)
    view_count = db.Column(db.Integer, nullable=False, default=0)
    usage_count = db.Column(db.Integer, nullable=False, default=0)
    rating_average = db.Column(db.Float, nullable=False, default=0.0)
    rating_count = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    published_at = db.Column(db.DateTime, nullable=True)

    # 关系
    owner = db.relationship('User', backref=db.backref('tools', lazy='dynamic'))
    media = db.relationship('ToolMedia', backref='tool', cascade='all, delete-orphan',
                            order_by='ToolMedia.sort_order')
    reviews = db.relationship('ToolReview', backref='tool', cascade='all, delete-orphan')
    analytics_events = db.relationship('AnalyticsEvent', backref='tool', cascade='all, delete-orphan')
    api_usage = db.relationship('ApiUsage', backref='tool', cascade='all, delete-orphan')
    category = db.relationship('Category', back_populates='tools')

    @property
    def is_publicly_listed(self):
        return self.status == 'APPROVED' and self.visibility == 'PUBLIC'

    def can_be_viewed_by(self, user_id=None, is_admin=False):
        """已审核且非私有的工具对所有人可见，否则只有所有者和管理员可见"""
        if self.status == 'APPROVED' and self.visibility != 'PRIVATE':
            return True
        if is_admin:
            return True
        return user_id is not None and user_id == self.owner_id

    def review_summary(self):
        """
        根据已加载的评论行计算评论数和平均分。

        返回:
            tuple: (review_count, average_rating)，没有评论时平均分为 0
        """
        ratings = [review.rating for review in self.reviews]
        if not ratings:
            return 0, 0
        return len(ratings), sum(ratings) / len(ratings)

    def to_dict(self, include_owner=True, include_media=True):
        data = {
            'id': self.id,
            'owner_id': self.owner_id,
            'name': self.name,
            'slug': self.slug,
            'tagline': self.tagline,
            'description': self.description,
            'logo_url': self.logo_url,
            'website_url': self.website_url,
            'demo_url': self.demo_url,
            'documentation_url': self.documentation_url,
            'github_url': self.github_url,
            'api_endpoint': self.api_endpoint,
            'category_id': self.category_id,
            'category': self.category.to_summary_dict() if self.category else None,
            'tags': self.tags or [],
            'tech_stack': self.tech_stack or [],
            'api_type': self.api_type,
            'authentication_type': self.authentication_type,
            'pricing_model': self.pricing_model,
            'pricing_details': self.pricing_details,
            'status': self.status,
            'visibility': self.visibility,
            'featured': self.featured,
            'view_count': self.view_count,
            'usage_count': self.usage_count,
            'rating_average': self.rating_average,
            'rating_count': self.rating_count,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
            'published_at': self.published_at.isoformat() if self.published_at else None
        }
        if include_owner:
            data['owner'] = self.owner.to_dict_basic() if self.owner else None
        if include_media:
            data['media'] = [item.to_dict() for item in self.media]
        return data

    def __repr__(self):
        return f'<Tool {self.name}>'
