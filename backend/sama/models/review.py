# backend/sama/models/review.py
"""
定义工具评论模型 (ToolReview)。
用于收集用户对工具的 1-5 分评分和评论。每个用户对同一工具只能评论一次 (联合唯一约束)，
工具所有者不能评论自己的工具 (在路由层校验)。

注意: 如果新增、删除或修改功能，必须在这开头的注释中同步修改，如发现功能与注释描述不同，也可以在确定后修改。
"""
from sama import db
from datetime import datetime
from sqlalchemy import UniqueConstraint, func

MIN_RATING = 1
MAX_RATING = 5

class ToolReview(db.Model):
    __tablename__ = 'tool_reviews'

    id = db.Column(db.Integer, primary_key=True)
    tool_id = db.Column(db.Integer, db.ForeignKey('tools.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False, index=True)
    rating = db.Column(db.Integer, nullable=False)  # 1-5评分
    title = db.Column(db.String(200), nullable=True)
    content = db.Column(db.Text, nullable=True)
    verified_usage = db.Column(db.Boolean, default=False, nullable=False)
    helpful_count = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # 定义联合唯一约束，确保一个用户对一个工具只能评论一次
    __table_args__ = (UniqueConstraint('tool_id', 'user_id', name='uq_tool_review_user'),)

    # 关系
    user = db.relationship('User', backref=db.backref('reviews', lazy='dynamic'))
    # tool 关系通过 Tool 模型中的 backref='tool' 建立

    @classmethod
    def rating_stats(cls, tool_id):
        """从评论表重新聚合评分，返回 (平均分, 评论数)"""
        average, count = db.session.query(
            func.avg(cls.rating), func.count(cls.id)
        ).filter(cls.tool_id == tool_id).one()
        return float(average or 0), int(count or 0)

    def to_dict(self, include_user=True):
        data = {
            'id': self.id,
            'tool_id': self.tool_id,
            'user_id': self.user_id,
            'rating': self.rating,
            'title': self.title,
            'content': self.content,
            'verified_usage': self.verified_usage,
            'helpful_count': self.helpful_count,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }
        if include_user:
            data['user'] = self.user.to_dict_basic() if self.user else None
        return data

    def __repr__(self):
        return f'<ToolReview for Tool {self.tool_id} - Rating {self.rating}>'
