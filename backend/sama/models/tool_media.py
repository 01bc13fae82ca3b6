# backend/sama/models/tool_media.py
"""
定义工具媒体模型 (ToolMedia)。
存储工具的截图、视频、Logo、横幅等外部托管资源的链接，按 sort_order 排序展示。

注意: 如果新增、删除或修改功能，必须在这开头的注释中同步修改，如发现功能与注释描述不同，也可以在确定后修改。
"""
from sama import db
from datetime import datetime

MEDIA_TYPES = ('SCREENSHOT', 'VIDEO', 'LOGO', 'BANNER')

class ToolMedia(db.Model):
    __tablename__ = 'tool_media'

    id = db.Column(db.Integer, primary_key=True)
    tool_id = db.Column(db.Integer, db.ForeignKey('tools.id', ondelete='CASCADE'), nullable=False, index=True)
    type = db.Column(db.String(20), nullable=False)
    url = db.Column(db.String(255), nullable=False)
    alt_text = db.Column(db.String(255), nullable=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type,
            'url': self.url,
            'alt_text': self.alt_text,
            'sort_order': self.sort_order
        }

    def __repr__(self):
        return f'<ToolMedia {self.type} for Tool {self.tool_id}>'
