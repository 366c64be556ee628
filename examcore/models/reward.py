"""
Reward Models
Point-priced catalog plus per-student purchases
"""
from examcore.extensions import db
from examcore.utils.helpers import now_utc


class Reward(db.Model):
    """Reward catalog entry"""
    __tablename__ = 'reward'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    category = db.Column(db.String(50))  # Avatar, Theme, Badge, Certificate
    cost = db.Column(db.Integer, nullable=False, default=0)

    def __repr__(self):
        return f'<Reward {self.title} ({self.cost})>'

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'category': self.category,
            'cost': self.cost,
        }


class RewardPurchase(db.Model):
    __tablename__ = 'reward_purchase'

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.String(64), nullable=False, index=True)
    reward_id = db.Column(db.Integer, db.ForeignKey('reward.id'), nullable=False)
    cost_paid = db.Column(db.Integer, nullable=False)
    purchased_at = db.Column(db.DateTime(timezone=True), default=now_utc)

    __table_args__ = (
        db.UniqueConstraint(
            'student_id', 'reward_id',
            name='unique_purchase_per_student'
        ),
    )

    def __repr__(self):
        return f'<RewardPurchase {self.reward_id} by {self.student_id}>'
