# backend/sama/models/analytics.py
"""
定义工具分析相关模型。

- AnalyticsEvent: 只追加的事件记录 (浏览、点击、API 调用、注册、购买)，附带来源页、UA 等元数据，
  供所有者仪表盘按日期范围聚合。正常流程下不修改、不删除。
- ApiUsage: 按端点记录的 API 调用量，用于统计各端点的使用总数。

注意: 如果新增、删除或修改功能，必须在这开头的注释中同步修改，如发现功能与注释描述不同，也可以在确定后修改。
"""
from sama import db
from datetime import datetime

EVENT_TYPES = ('VIEW', 'CLICK', 'API_CALL', 'SIGNUP', 'PURCHASE')


class AnalyticsEvent(db.Model):
    __tablename__ = 'tool_analytics'

    id = db.Column(db.Integer, primary_key=True)
    tool_id = db.Column(db.Integer, db.ForeignKey('tools.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('profiles.id', ondelete='SET NULL'), nullable=True, index=True)
    event_type = db.Column(db.String(20), nullable=False, index=True)
    # 'metadata' 是 Declarative 的保留属性名，列名保持为 metadata
    event_metadata = db.Column('metadata', db.JSON, nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    referrer = db.Column(db.String(500), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'tool_id': self.tool_id,
            'user_id': self.user_id,
            'event_type': self.event_type,
            'metadata': self.event_metadata,
            'referrer': self.referrer,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }

    def __repr__(self):
        return f"<AnalyticsEvent(tool_id={self.tool_id}, type={self.event_type})>"


class ApiUsage(db.Model):
    __tablename__ = 'api_usage'

    id = db.Column(db.Integer, primary_key=True)
    tool_id = db.Column(db.Integer, db.ForeignKey('tools.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('profiles.id', ondelete='SET NULL'), nullable=True)
    endpoint = db.Column(db.String(255), nullable=False)
    request_count = db.Column(db.Integer, nullable=False, default=1)
    response_time_ms = db.Column(db.Integer, nullable=True)
    status_code = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<ApiUsage(tool_id={self.tool_id}, endpoint={self.endpoint})>"
