from datetime import datetime, timezone
from sqlalchemy import (
    Column, Integer, String, Float, Date, DateTime, Boolean, Text, ForeignKey, JSON,
    CheckConstraint, UniqueConstraint, Table,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what the database stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ============ ACCESS CONTROL ============

user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("user.user_id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", Integer, ForeignKey("role.role_id", ondelete="CASCADE"), primary_key=True),
)

role_permissions = Table(
    "role_permissions",
    Base.metadata,
    Column("role_id", Integer, ForeignKey("role.role_id", ondelete="CASCADE"), primary_key=True),
    Column("permission_id", Integer, ForeignKey("permission.permission_id", ondelete="CASCADE"), primary_key=True),
)


class User(Base):
    __tablename__ = "user"

    user_id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=False, index=True)
    password = Column(String, nullable=False)  # bcrypt hash
    settings = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now(), onupdate=utcnow)

    # Relationships
    roles = relationship("Role", secondary=user_roles, back_populates="users")
    accounts = relationship("Account", back_populates="user", cascade="all, delete-orphan")
    categories = relationship("Category", back_populates="user", cascade="all, delete-orphan")
    transactions = relationship("Transaction", back_populates="user", cascade="all, delete-orphan")
    budgets = relationship("Budget", back_populates="user", cascade="all, delete-orphan")
    goals = relationship("Goal", back_populates="user", cascade="all, delete-orphan")
    conversations = relationship("AiConversation", back_populates="user", cascade="all, delete-orphan")
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")

    def has_role(self, *names: str) -> bool:
        return any(role.name in names for role in self.roles)


class Role(Base):
    __tablename__ = "role"

    role_id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())

    # Relationships
    users = relationship("User", secondary=user_roles, back_populates="roles")
    permissions = relationship("Permission", secondary=role_permissions, back_populates="roles")


class Permission(Base):
    __tablename__ = "permission"

    permission_id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(String, nullable=True)

    # Relationships
    roles = relationship("Role", secondary=role_permissions, back_populates="permissions")


# ============ FINANCE ============

class Category(Base):
    __tablename__ = "category"

    category_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("user.user_id"), nullable=True)  # NULL for system categories
    name = Column(String, nullable=False)
    type = Column(String, nullable=False)  # income, expense
    color = Column(String(7), nullable=True)
    icon = Column(String, nullable=True)
    budget_limit = Column(Float, nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())

    # Relationships
    user = relationship("User", back_populates="categories")
    transactions = relationship("Transaction", back_populates="category")

    __table_args__ = (
        CheckConstraint("type IN ('income', 'expense')", name="check_category_type"),
    )

    @property
    def is_system(self) -> bool:
        return self.user_id is None


class Account(Base):
    __tablename__ = "account"

    account_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("user.user_id"), nullable=False)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False)  # checking, savings, credit, investment, cash
    balance = Column(Float, nullable=False, default=0.0)
    currency = Column(String(3), nullable=False, default="USD")
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now(), onupdate=utcnow)

    # Relationships
    user = relationship("User", back_populates="accounts")
    transactions = relationship("Transaction", back_populates="account")


class Transaction(Base):
    __tablename__ = "transaction"

    transaction_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("user.user_id"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("category.category_id"), nullable=False)
    account_id = Column(Integer, ForeignKey("account.account_id"), nullable=True)
    type = Column(String, nullable=False)  # income, expense
    amount = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    date = Column(Date, nullable=False)
    note = Column(Text, nullable=True)
    source = Column(String, nullable=False, default="manual")  # manual, sms
    meta_data = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now(), index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now(), onupdate=utcnow)

    # Relationships
    user = relationship("User", back_populates="transactions")
    category = relationship("Category", back_populates="transactions")
    account = relationship("Account", back_populates="transactions")

    __table_args__ = (
        CheckConstraint("amount > 0", name="check_transaction_amount_positive"),
        CheckConstraint("type IN ('income', 'expense')", name="check_transaction_type"),
    )

    @property
    def category_name(self):
        return self.category.name if self.category else None


class Budget(Base):
    __tablename__ = "budget"

    budget_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("user.user_id"), nullable=False)
    category_id = Column(Integer, ForeignKey("category.category_id"), nullable=False)
    month = Column(Date, nullable=False)  # Always the first day of the month
    limit_amount = Column(Float, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())

    # Relationships
    user = relationship("User", back_populates="budgets")
    category = relationship("Category")

    __table_args__ = (
        CheckConstraint("limit_amount > 0", name="check_budget_limit_positive"),
        UniqueConstraint("user_id", "category_id", "month", name="uq_budget_user_category_month"),
    )


class Goal(Base):
    __tablename__ = "goal"

    goal_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("user.user_id"), nullable=False)
    name = Column(String, nullable=False)
    target_amount = Column(Float, nullable=False)
    saved_amount = Column(Float, nullable=False, default=0.0)
    target_date = Column(Date, nullable=True)
    status = Column(String, nullable=False, default="active")  # active, completed, paused
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())

    # Relationships
    user = relationship("User", back_populates="goals")

    __table_args__ = (
        CheckConstraint("target_amount > 0", name="check_goal_target_positive"),
        CheckConstraint("saved_amount >= 0", name="check_goal_saved_non_negative"),
    )


# ============ AI ============

class AiConversation(Base):
    __tablename__ = "ai_conversation"

    conversation_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("user.user_id"), nullable=False, index=True)
    question = Column(Text, nullable=False)
    answer = Column(Text, nullable=False)
    type = Column(String, nullable=False, default="advice")  # advice, analysis
    meta_data = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now(), index=True)

    # Relationships
    user = relationship("User", back_populates="conversations")


class AiRequest(Base):
    __tablename__ = "ai_request"

    request_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("user.user_id"), nullable=False)
    input_summary = Column(JSON, nullable=False)
    response = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="pending")  # pending, success, failed
    cost = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())


# ============ NOTIFICATIONS ============

class Notification(Base):
    __tablename__ = "notification"

    notification_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("user.user_id"), nullable=False, index=True)
    type = Column(String, nullable=False)  # achievement, reminder, system, ...
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSON, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())

    # Relationships
    user = relationship("User", back_populates="notifications")


# ============ GAMIFICATION ============

class UserStreak(Base):
    __tablename__ = "user_streak"

    streak_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("user.user_id"), nullable=False)
    streak_type = Column(String, nullable=False, default="expense_logging")
    streak_count = Column(Integer, nullable=False, default=0)
    last_logged_date = Column(Date, nullable=True)
    badges_earned = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "streak_type", name="uq_user_streak_type"),
    )


class UserLevel(Base):
    __tablename__ = "user_level"

    level_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("user.user_id"), nullable=False, unique=True)
    current_level = Column(Integer, nullable=False, default=1)
    current_title = Column(String, nullable=False, default="Saver")
    total_coins = Column(Integer, nullable=False, default=0)
    total_badges = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now(), onupdate=utcnow)


class UserReward(Base):
    __tablename__ = "user_reward"

    reward_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("user.user_id"), nullable=False, index=True)
    reward_type = Column(String, nullable=False)  # streak_badge, daily_spin, goal_completion, goal_milestone
    reward_name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    coins_earned = Column(Integer, nullable=False, default=0)
    badge_name = Column(String, nullable=True)
    meta_data = Column("metadata", JSON, nullable=True)
    claimed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())


class DailySpin(Base):
    __tablename__ = "daily_spin"

    spin_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("user.user_id"), nullable=False)
    spin_date = Column(Date, nullable=False)
    reward_type = Column(String, nullable=False)  # coins, badge, bonus
    reward_value = Column(String, nullable=False)
    coins_earned = Column(Integer, nullable=False, default=0)
    is_claimed = Column(Boolean, nullable=False, default=False)
    reward_id = Column(Integer, ForeignKey("user_reward.reward_id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())

    # Relationships
    reward = relationship("UserReward")

    __table_args__ = (
        UniqueConstraint("user_id", "spin_date", name="uq_daily_spin_user_date"),
    )


class UserGoal(Base):
    __tablename__ = "user_goal"

    user_goal_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("user.user_id"), nullable=False)
    goal_name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    target_amount = Column(Float, nullable=False)
    current_amount = Column(Float, nullable=False, default=0.0)
    start_date = Column(Date, nullable=False)
    target_date = Column(Date, nullable=False)
    goal_type = Column(String, nullable=False, default="savings")  # savings, spending_limit, investment, debt_payoff
    status = Column(String, nullable=False, default="active")  # active, completed, paused, cancelled
    milestones = Column(JSON, nullable=False, default=list)  # percentages already rewarded
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())

    __table_args__ = (
        CheckConstraint("target_amount > 0", name="check_user_goal_target_positive"),
    )


# ============ CMS ============

class Page(Base):
    __tablename__ = "page"

    page_id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    slug = Column(String, unique=True, nullable=False, index=True)
    content = Column(Text, nullable=True)
    excerpt = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="draft")  # draft, published, archived
    template = Column(String, nullable=True)
    meta = Column(JSON, nullable=True)
    blocks = Column(JSON, nullable=True)
    parent_id = Column(Integer, ForeignKey("page.page_id"), nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    featured = Column(Boolean, nullable=False, default=False)
    published_at = Column(DateTime, nullable=True)
    created_by = Column(Integer, ForeignKey("user.user_id"), nullable=True)
    updated_by = Column(Integer, ForeignKey("user.user_id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now(), onupdate=utcnow)

    # Relationships
    parent = relationship("Page", remote_side=[page_id], back_populates="children")
    children = relationship("Page", back_populates="parent")


class Post(Base):
    __tablename__ = "post"

    post_id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    slug = Column(String, unique=True, nullable=False, index=True)
    content = Column(Text, nullable=True)
    excerpt = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="draft")  # draft, published, archived
    type = Column(String, nullable=False, default="post")
    meta = Column(JSON, nullable=True)
    blocks = Column(JSON, nullable=True)
    featured_image = Column(String, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    categories = Column(JSON, nullable=False, default=list)
    featured = Column(Boolean, nullable=False, default=False)
    published_at = Column(DateTime, nullable=True)
    author_id = Column(Integer, ForeignKey("user.user_id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now(), onupdate=utcnow)


class Media(Base):
    __tablename__ = "media"

    media_id = Column(Integer, primary_key=True, index=True)
    filename = Column(String, nullable=False)
    original_filename = Column(String, nullable=False)
    mime_type = Column(String, nullable=False)
    path = Column(String, nullable=False)
    url = Column(String, nullable=False)
    size = Column(Integer, nullable=False)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    alt_text = Column(String, nullable=True)
    title = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    meta_data = Column("metadata", JSON, nullable=True)
    folder = Column(String, nullable=True)
    is_public = Column(Boolean, nullable=False, default=True)
    uploaded_by = Column(Integer, ForeignKey("user.user_id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())
