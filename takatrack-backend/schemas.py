from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import date, datetime
from enum import Enum

# Field names below shadow `date`, so annotations use this alias
CalendarDate = date

# ============ ENUMS ============
class TransactionTypeEnum(str, Enum):
    income = "income"
    expense = "expense"

class TransactionSourceEnum(str, Enum):
    manual = "manual"
    sms = "sms"

class AccountTypeEnum(str, Enum):
    checking = "checking"
    savings = "savings"
    credit = "credit"
    investment = "investment"
    cash = "cash"

class GoalStatusEnum(str, Enum):
    active = "active"
    completed = "completed"
    paused = "paused"

class UserGoalTypeEnum(str, Enum):
    savings = "savings"
    spending_limit = "spending_limit"
    investment = "investment"
    debt_payoff = "debt_payoff"

class UserGoalStatusEnum(str, Enum):
    active = "active"
    completed = "completed"
    paused = "paused"
    cancelled = "cancelled"

class PublishStatusEnum(str, Enum):
    draft = "draft"
    published = "published"
    archived = "archived"

class ExportFormatEnum(str, Enum):
    csv = "csv"
    json = "json"


def _validate_currency(value):
    if value is None:
        return value
    if len(value) != 3 or not value.isalpha():
        raise ValueError("Currency must be a 3-letter code")
    return value.upper()


# ============ AUTH SCHEMAS ============
class UserRegister(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8)

class UserLogin(BaseModel):
    email: EmailStr
    password: str

class UserResponse(BaseModel):
    user_id: int
    name: str
    email: EmailStr
    settings: Optional[Dict[str, Any]] = None
    roles: List[str] = []
    created_at: datetime

    @field_validator("roles", mode="before")
    @classmethod
    def role_names(cls, v):
        return [getattr(role, "name", role) for role in v or []]

    class Config:
        from_attributes = True

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse

class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    settings: Optional[Dict[str, Any]] = None

class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8)


# ============ ACCOUNT SCHEMAS ============
class AccountBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: AccountTypeEnum
    balance: float = 0.0
    currency: str = "USD"
    description: Optional[str] = Field(None, max_length=1000)
    is_active: bool = True

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v):
        return _validate_currency(v)

class AccountCreate(AccountBase):
    pass

class AccountUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[AccountTypeEnum] = None
    balance: Optional[float] = None
    currency: Optional[str] = None
    description: Optional[str] = Field(None, max_length=1000)
    is_active: Optional[bool] = None

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v):
        return _validate_currency(v)

class AccountResponse(AccountBase):
    account_id: int
    user_id: int
    created_at: datetime

    class Config:
        from_attributes = True


# ============ CATEGORY SCHEMAS ============
class CategoryBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: TransactionTypeEnum
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    icon: Optional[str] = Field(None, max_length=255)
    budget_limit: Optional[float] = Field(None, ge=0)
    description: Optional[str] = Field(None, max_length=1000)

class CategoryCreate(CategoryBase):
    pass

class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[TransactionTypeEnum] = None
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    icon: Optional[str] = Field(None, max_length=255)
    budget_limit: Optional[float] = Field(None, ge=0)
    description: Optional[str] = Field(None, max_length=1000)

class CategoryResponse(CategoryBase):
    category_id: int
    user_id: Optional[int] = None
    is_system: bool = False

    class Config:
        from_attributes = True


# ============ TRANSACTION SCHEMAS ============
class TransactionBase(BaseModel):
    type: TransactionTypeEnum
    category_id: int
    account_id: Optional[int] = None
    amount: float = Field(..., ge=0.01)
    currency: str = "USD"
    date: CalendarDate
    note: Optional[str] = Field(None, max_length=1000)
    source: TransactionSourceEnum = TransactionSourceEnum.manual
    meta_data: Optional[Dict[str, Any]] = None

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v):
        return _validate_currency(v)

class TransactionCreate(TransactionBase):
    pass

class TransactionUpdate(BaseModel):
    type: Optional[TransactionTypeEnum] = None
    category_id: Optional[int] = None
    account_id: Optional[int] = None
    amount: Optional[float] = Field(None, ge=0.01)
    currency: Optional[str] = None
    date: Optional[CalendarDate] = None
    note: Optional[str] = Field(None, max_length=1000)
    source: Optional[TransactionSourceEnum] = None
    meta_data: Optional[Dict[str, Any]] = None

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v):
        return _validate_currency(v)

class TransactionResponse(TransactionBase):
    transaction_id: int
    user_id: int
    category_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class TransactionList(BaseModel):
    transactions: List[TransactionResponse]
    total: int
    page: int
    per_page: int
    has_more: bool

class CategoryTotal(BaseModel):
    category_id: int
    category_name: str
    type: TransactionTypeEnum
    total: float
    count: int

class TransactionSummary(BaseModel):
    total_income: float
    total_expenses: float
    net_balance: float
    transaction_count: int
    by_category: List[CategoryTotal]


# ============ BUDGET SCHEMAS ============
class BudgetBase(BaseModel):
    category_id: int
    month: CalendarDate = Field(..., description="Any day in the budget month; stored as the first of the month")
    limit_amount: float = Field(..., gt=0)

    @field_validator("month")
    @classmethod
    def first_of_month(cls, v):
        return v.replace(day=1)

class BudgetCreate(BudgetBase):
    pass

class BudgetUpdate(BaseModel):
    category_id: Optional[int] = None
    month: Optional[CalendarDate] = None
    limit_amount: Optional[float] = Field(None, gt=0)

    @field_validator("month")
    @classmethod
    def first_of_month(cls, v):
        return v.replace(day=1) if v else v

class BudgetResponse(BudgetBase):
    budget_id: int
    user_id: int
    category_name: Optional[str] = None
    spent_amount: float = 0.0
    remaining_amount: float = 0.0
    percentage_used: float = 0.0
    status: str = Field("on_track", description="Budget status: on_track, at_risk, or over_budget")
    created_at: datetime

    class Config:
        from_attributes = True

class BudgetList(BaseModel):
    budgets: List[BudgetResponse]
    total: int
    skip: int
    limit: int
    has_more: bool


# ============ GOAL SCHEMAS ============
class GoalBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    target_amount: float = Field(..., gt=0)
    saved_amount: float = Field(0.0, ge=0)
    target_date: Optional[CalendarDate] = None
    status: GoalStatusEnum = GoalStatusEnum.active

class GoalCreate(GoalBase):
    @field_validator("target_date")
    @classmethod
    def target_date_in_future(cls, v):
        if v is not None and v <= date.today():
            raise ValueError("Target date must be after today")
        return v

class GoalUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    target_amount: Optional[float] = Field(None, gt=0)
    saved_amount: Optional[float] = Field(None, ge=0)
    target_date: Optional[CalendarDate] = None
    status: Optional[GoalStatusEnum] = None

class GoalContribution(BaseModel):
    amount: float = Field(..., gt=0)

class GoalResponse(GoalBase):
    goal_id: int
    user_id: int
    progress_percentage: float = 0.0
    remaining_amount: float = 0.0
    days_remaining: Optional[int] = None
    monthly_required: Optional[float] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ============ AI SCHEMAS ============
class AdviceRequest(BaseModel):
    question: str = Field(..., min_length=1, max_length=1000)

    @field_validator("question")
    @classmethod
    def not_blank(cls, v):
        if not v.strip():
            raise ValueError("Question must not be blank")
        return v

class AdviceResponse(BaseModel):
    answer: str
    context_used: bool
    workflow_state: Optional[str] = None
    reasoning_steps: Optional[List[str]] = None
    question_type: Optional[str] = None

class ExpenseItem(BaseModel):
    amount: float
    category: str
    description: Optional[str] = None

class SpendingInsightsRequest(BaseModel):
    expenses: List[ExpenseItem] = Field(..., min_length=1)

class SpendingInsightsResponse(BaseModel):
    insights: Dict[str, Any]
    summary: Dict[str, Any]

class ClassifyExpenseRequest(BaseModel):
    description: str = Field(..., min_length=1, max_length=255)

class ClassifyExpenseResponse(BaseModel):
    category: str
    confidence: str
    confidence_score: float
    method: str
    alternative_categories: List[str]
    keywords_found: List[str]
    reasoning_steps: List[str]

class ConversationResponse(BaseModel):
    id: int
    question: str
    answer: str
    type: str
    created_at: datetime

class ConversationList(BaseModel):
    conversations: List[ConversationResponse]

class InsightsSummary(BaseModel):
    totals_by_category: Dict[str, Dict[str, float]]
    last_3_months_avg: Dict[str, float]
    user_goal: Optional[str] = None

class InsightsRequest(BaseModel):
    summary: InsightsSummary

class InsightsResponse(BaseModel):
    insights: str
    request_id: int
    status: str


# ============ NOTIFICATION SCHEMAS ============
class NotificationResponse(BaseModel):
    notification_id: int
    type: str
    title: str
    message: str
    data: Optional[Dict[str, Any]] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True

class NotificationList(BaseModel):
    notifications: List[NotificationResponse]
    total: int
    unread_count: int
    skip: int
    limit: int
    has_more: bool


# ============ GAMIFICATION SCHEMAS ============
class RewardResponse(BaseModel):
    reward_id: int
    reward_type: str
    reward_name: str
    description: Optional[str] = None
    coins_earned: int
    badge_name: Optional[str] = None
    meta_data: Optional[Dict[str, Any]] = None
    claimed_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True

class StreakResponse(BaseModel):
    streak_type: str
    streak_count: int
    last_logged_date: Optional[CalendarDate] = None
    badges_earned: List[str] = []

    class Config:
        from_attributes = True

class UserGoalCreate(BaseModel):
    goal_name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    target_amount: float = Field(..., gt=0)
    target_date: CalendarDate
    goal_type: UserGoalTypeEnum = UserGoalTypeEnum.savings

    @field_validator("target_date")
    @classmethod
    def target_date_in_future(cls, v):
        if v <= date.today():
            raise ValueError("Target date must be after today")
        return v

class UserGoalProgress(BaseModel):
    amount: float = Field(..., gt=0)

class UserGoalResponse(BaseModel):
    user_goal_id: int
    goal_name: str
    description: Optional[str] = None
    target_amount: float
    current_amount: float
    start_date: CalendarDate
    target_date: CalendarDate
    goal_type: str
    status: str
    milestones: List[int] = []
    completed_at: Optional[datetime] = None
    progress_percentage: float = 0.0

    class Config:
        from_attributes = True


# ============ CMS SCHEMAS ============
class PageBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    slug: Optional[str] = Field(None, max_length=255)
    content: Optional[str] = None
    excerpt: Optional[str] = Field(None, max_length=500)
    status: PublishStatusEnum = PublishStatusEnum.draft
    template: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None
    blocks: Optional[List[Dict[str, Any]]] = None
    parent_id: Optional[int] = None
    sort_order: int = 0
    featured: bool = False

class PageCreate(PageBase):
    pass

class PageUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    slug: Optional[str] = Field(None, max_length=255)
    content: Optional[str] = None
    excerpt: Optional[str] = Field(None, max_length=500)
    status: Optional[PublishStatusEnum] = None
    template: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None
    blocks: Optional[List[Dict[str, Any]]] = None
    parent_id: Optional[int] = None
    sort_order: Optional[int] = None
    featured: Optional[bool] = None

class PageResponse(PageBase):
    page_id: int
    slug: str
    published_at: Optional[datetime] = None
    created_by: Optional[int] = None
    updated_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class PageList(BaseModel):
    pages: List[PageResponse]
    total: int
    skip: int
    limit: int
    has_more: bool

class PostBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    slug: Optional[str] = Field(None, max_length=255)
    content: Optional[str] = None
    excerpt: Optional[str] = Field(None, max_length=500)
    status: PublishStatusEnum = PublishStatusEnum.draft
    type: str = "post"
    meta: Optional[Dict[str, Any]] = None
    blocks: Optional[List[Dict[str, Any]]] = None
    featured_image: Optional[str] = None
    tags: List[str] = []
    categories: List[str] = []
    featured: bool = False

class PostCreate(PostBase):
    pass

class PostUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    slug: Optional[str] = Field(None, max_length=255)
    content: Optional[str] = None
    excerpt: Optional[str] = Field(None, max_length=500)
    status: Optional[PublishStatusEnum] = None
    type: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None
    blocks: Optional[List[Dict[str, Any]]] = None
    featured_image: Optional[str] = None
    tags: Optional[List[str]] = None
    categories: Optional[List[str]] = None
    featured: Optional[bool] = None

class PostResponse(PostBase):
    post_id: int
    slug: str
    author_id: Optional[int] = None
    published_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class PostList(BaseModel):
    posts: List[PostResponse]
    total: int
    skip: int
    limit: int
    has_more: bool

class MediaUpdate(BaseModel):
    alt_text: Optional[str] = Field(None, max_length=255)
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    folder: Optional[str] = Field(None, max_length=255)
    is_public: Optional[bool] = None

class MediaResponse(BaseModel):
    media_id: int
    filename: str
    original_filename: str
    mime_type: str
    url: str
    size: int
    width: Optional[int] = None
    height: Optional[int] = None
    alt_text: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    folder: Optional[str] = None
    is_public: bool
    uploaded_by: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True

class MediaList(BaseModel):
    media: List[MediaResponse]
    total: int
    skip: int
    limit: int
    has_more: bool

class PermissionResponse(BaseModel):
    permission_id: int
    name: str
    description: Optional[str] = None

    class Config:
        from_attributes = True

class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=255)
    permissions: List[str] = []

class RoleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=255)
    permissions: Optional[List[str]] = None

class RoleResponse(BaseModel):
    role_id: int
    name: str
    description: Optional[str] = None
    permissions: List[PermissionResponse] = []

    class Config:
        from_attributes = True

class RoleAssignment(BaseModel):
    user_id: int

class AdminUserCreate(UserRegister):
    roles: List[str] = []

class AdminUserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=8)
    roles: Optional[List[str]] = None

class AdminUserList(BaseModel):
    users: List[UserResponse]
    total: int
    skip: int
    limit: int
    has_more: bool
