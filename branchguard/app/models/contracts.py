from pydantic import BaseModel, Field
from typing import List, Literal, Optional

ReviewState = Literal["approved", "changes_requested", "commented"]
ReviewRequestState = Literal["pending", "completed"]
CommitState = Literal["pending", "success", "failure", "error"]


# --- Branch protection ---

class RuleCreateRequest(BaseModel):
    pattern: str
    require_pull_request: bool
    required_reviewers: int = 0
    require_status_checks: bool = False
    required_status_checks: List[str] = Field(default_factory=list)
    allow_force_push: bool = False
    allow_deletion: bool = False

    model_config = {
        "json_schema_extra": {
            "example": {
                "pattern": "release/*",
                "require_pull_request": True,
                "required_reviewers": 2,
                "require_status_checks": True,
                "required_status_checks": ["ci/test", "ci/build"],
                "allow_force_push": False,
                "allow_deletion": False,
            }
        }
    }


class RuleUpdateRequest(BaseModel):
    """Partial update; only fields present in the request body are applied."""
    pattern: Optional[str] = None
    require_pull_request: Optional[bool] = None
    required_reviewers: Optional[int] = None
    require_status_checks: Optional[bool] = None
    required_status_checks: Optional[List[str]] = None
    allow_force_push: Optional[bool] = None
    allow_deletion: Optional[bool] = None


class BranchProtectionRule(BaseModel):
    id: str
    repo_id: str
    pattern: str
    require_pull_request: bool
    required_reviewers: int
    require_status_checks: bool
    required_status_checks: List[str]
    allow_force_push: bool
    allow_deletion: bool
    created_at: str
    updated_at: str


class ProtectionCheckResponse(BaseModel):
    protected: bool
    rule: Optional[BranchProtectionRule] = None


class CanPushRequest(BaseModel):
    branch: str
    is_force_push: bool = False
    is_deletion: bool = False
    is_pr_merge: bool = False
    pr_id: Optional[str] = Field(default=None, description="Pull request being merged when is_pr_merge is set")


class CanPushResponse(BaseModel):
    allowed: bool
    reason: Optional[str] = None


class DeleteResponse(BaseModel):
    success: bool


# --- Repositories ---

class RepositoryCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    is_private: bool = False


class Repository(BaseModel):
    id: str
    owner_id: str
    name: str
    description: Optional[str] = None
    is_private: bool
    created_at: str


# --- Pull requests & reviews ---

class PullRequestCreateRequest(BaseModel):
    title: str = Field(..., min_length=1)
    body: Optional[str] = None
    source_branch: str
    target_branch: str
    head_sha: Optional[str] = None
    base_sha: Optional[str] = None


class PullRequest(BaseModel):
    id: str
    repo_id: str
    number: int
    author_id: str
    title: str
    body: Optional[str] = None
    source_branch: str
    target_branch: str
    head_sha: Optional[str] = None
    base_sha: Optional[str] = None
    state: str
    created_at: str


class ReviewRequestCreate(BaseModel):
    reviewer_id: str


class ReviewRequest(BaseModel):
    pr_id: str
    reviewer_id: str
    requested_by: Optional[str] = None
    state: ReviewRequestState
    requested_at: str
    completed_at: Optional[str] = None


class RemoveReviewRequestResponse(BaseModel):
    removed: bool


class ReviewCreateRequest(BaseModel):
    state: ReviewState
    body: Optional[str] = None
    commit_sha: Optional[str] = None


class Review(BaseModel):
    id: str
    pr_id: str
    reviewer_id: str
    state: ReviewState
    body: Optional[str] = None
    commit_sha: Optional[str] = None
    created_at: str


# --- Commit statuses ---

class CommitStatusRequest(BaseModel):
    context: str = Field(..., min_length=1)
    state: CommitState
    description: Optional[str] = None


class CommitStatus(BaseModel):
    repo_id: str
    sha: str
    context: str
    state: CommitState
    description: Optional[str] = None
    updated_at: str
