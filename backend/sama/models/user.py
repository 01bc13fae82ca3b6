# backend/sama/models/user.py
"""
定义用户资料模型 (User)。
用户记录由外部身份服务创建，本服务只读取资料用于嵌入工具和评论的响应，
并通过 JWT 中的 identity (用户ID) 与请求关联。

注意: 如果新增、删除或修改功能，必须在这开头的注释中同步修改，如发现功能与注释描述不同，也可以在确定后修改。
"""
from sama import db
from datetime import datetime

class User(db.Model):
    __tablename__ = 'profiles'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(100), unique=True, nullable=False, index=True)
    name = db.Column(db.String(100), nullable=True)
    avatar_url = db.Column(db.String(255), nullable=True)
    bio = db.Column(db.Text, nullable=True)
    website = db.Column(db.String(255), nullable=True)
    github_username = db.Column(db.String(100), nullable=True)
    reputation_score = db.Column(db.Integer, default=0, nullable=False)
    verified = db.Column(db.Boolean, default=False, nullable=False)
    is_admin = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # tools 关系通过 Tool 模型中的 backref='owner' 建立
    # reviews 关系通过 ToolReview 模型中的 backref='user' 建立

    def to_dict_basic(self):
        # Minimal user details for embedding in other objects
        return {
            'id': self.id,
            'name': self.name or self.email.split('@')[0],
            'avatar_url': self.avatar_url,
            'verified': self.verified
        }

    def to_public_dict(self):
        """返回用户的公开信息字典，不包含邮箱和权限字段"""
        data = self.to_dict_basic()
        data.update({
            'bio': self.bio,
            'website': self.website,
            'github_username': self.github_username
        })
        return data

    def __repr__(self):
        return f'<User {self.email}>'
