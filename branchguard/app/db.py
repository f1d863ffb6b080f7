import sqlite3
import json
import os
import uuid
import secrets
from datetime import datetime, timezone

DB_PATH = os.getenv("BG_SQLITE_PATH", "data/branchguard.db")

def reload_db_path(path: str = None):
    global DB_PATH
    if path:
        DB_PATH = path
    else:
        DB_PATH = os.getenv("BG_SQLITE_PATH", "data/branchguard.db")
    return DB_PATH

def _conn():
    con = sqlite3.connect(DB_PATH, check_same_thread=False, timeout=10)
    con.row_factory = sqlite3.Row
    con.execute("PRAGMA foreign_keys = ON")
    return con


def init_db():
    con = _conn(); cur = con.cursor()
    cur.execute("""
    CREATE TABLE IF NOT EXISTS api_keys(
        api_key TEXT PRIMARY KEY,
        user_id TEXT NOT NULL UNIQUE,
        email TEXT NOT NULL UNIQUE,
        usage_count INTEGER DEFAULT 0,
        created_at TEXT NOT NULL,
        is_active INTEGER DEFAULT 1
    );
    """)
    cur.execute("""
    CREATE TABLE IF NOT EXISTS repositories(
        id TEXT PRIMARY KEY,
        owner_id TEXT NOT NULL,
        name TEXT NOT NULL,
        description TEXT,
        is_private INTEGER DEFAULT 0,
        created_at TEXT NOT NULL,
        UNIQUE(owner_id, name)
    );
    """)
    cur.execute("""
    CREATE TABLE IF NOT EXISTS collaborators(
        repo_id TEXT NOT NULL REFERENCES repositories(id) ON DELETE CASCADE,
        user_id TEXT NOT NULL,
        permission TEXT NOT NULL,   -- admin|write|read
        created_at TEXT NOT NULL,
        PRIMARY KEY(repo_id, user_id)
    );
    """)
    cur.execute("""
    CREATE TABLE IF NOT EXISTS protection_rules(
        id TEXT PRIMARY KEY,
        repo_id TEXT NOT NULL REFERENCES repositories(id) ON DELETE CASCADE,
        pattern TEXT NOT NULL,
        require_pull_request INTEGER NOT NULL DEFAULT 0,
        required_reviewers INTEGER NOT NULL DEFAULT 0,
        require_status_checks INTEGER NOT NULL DEFAULT 0,
        required_status_checks TEXT NOT NULL DEFAULT '[]',
        allow_force_push INTEGER NOT NULL DEFAULT 0,
        allow_deletion INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );
    """)
    # (repo_id, pattern) uniqueness is what makes concurrent creates safe
    cur.execute("CREATE UNIQUE INDEX IF NOT EXISTS idx_rules_repo_pattern ON protection_rules(repo_id, pattern);")
    cur.execute("""
    CREATE TABLE IF NOT EXISTS pull_requests(
        id TEXT PRIMARY KEY,
        repo_id TEXT NOT NULL REFERENCES repositories(id) ON DELETE CASCADE,
        number INTEGER NOT NULL,
        author_id TEXT NOT NULL,
        title TEXT NOT NULL,
        body TEXT,
        source_branch TEXT NOT NULL,
        target_branch TEXT NOT NULL,
        head_sha TEXT,
        base_sha TEXT,
        state TEXT NOT NULL DEFAULT 'open',
        created_at TEXT NOT NULL,
        UNIQUE(repo_id, number)
    );
    """)
    cur.execute("""
    CREATE TABLE IF NOT EXISTS reviews(
        id TEXT PRIMARY KEY,
        pr_id TEXT NOT NULL REFERENCES pull_requests(id) ON DELETE CASCADE,
        reviewer_id TEXT NOT NULL,
        state TEXT NOT NULL,        -- approved|changes_requested|commented
        body TEXT,
        commit_sha TEXT,
        created_at TEXT NOT NULL
    );
    """)
    cur.execute("CREATE INDEX IF NOT EXISTS idx_reviews_pr ON reviews(pr_id, reviewer_id);")
    cur.execute("""
    CREATE TABLE IF NOT EXISTS review_requests(
        pr_id TEXT NOT NULL REFERENCES pull_requests(id) ON DELETE CASCADE,
        reviewer_id TEXT NOT NULL,
        requested_by TEXT,
        state TEXT NOT NULL DEFAULT 'pending',  -- pending|completed
        requested_at TEXT NOT NULL,
        completed_at TEXT,
        PRIMARY KEY(pr_id, reviewer_id)
    );
    """)
    cur.execute("""
    CREATE TABLE IF NOT EXISTS commit_statuses(
        repo_id TEXT NOT NULL REFERENCES repositories(id) ON DELETE CASCADE,
        sha TEXT NOT NULL,
        context TEXT NOT NULL,
        state TEXT NOT NULL,        -- pending|success|failure|error
        description TEXT,
        updated_at TEXT NOT NULL,
        PRIMARY KEY(repo_id, sha, context)
    );
    """)
    con.commit(); con.close()

# --- Generic DB Helpers ---
def fetchall(query: str, params: tuple = ()):
    con = _conn()
    try:
        rows = con.execute(query, params).fetchall()
    finally:
        con.close()
    return [dict(r) for r in rows]

def fetchone(query: str, params: tuple = ()):
    con = _conn()
    try:
        row = con.execute(query, params).fetchone()
    finally:
        con.close()
    return dict(row) if row else None

def exec(query: str, params: tuple = ()) -> int:
    """Run a single write statement; returns the affected row count."""
    con = _conn()
    try:
        cur = con.execute(query, params)
        con.commit()
        return cur.rowcount
    finally:
        con.close()

# --- Datetime Helpers ---
def now_utc() -> datetime:
    return datetime.now(timezone.utc)

def iso_z(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")

def new_id() -> str:
    return str(uuid.uuid4())

# --- API keys / users ---

def generate_api_key() -> str:
    """Generate a secure API key."""
    return f"bg_{secrets.token_urlsafe(32)}"

def create_api_key(email: str) -> dict:
    """Register a user for an email and return its key row."""
    row = {
        "api_key": generate_api_key(),
        "user_id": new_id(),
        "email": email,
        "created_at": iso_z(now_utc()),
    }
    exec(
        "INSERT INTO api_keys(api_key, user_id, email, created_at) VALUES (?, ?, ?, ?)",
        (row["api_key"], row["user_id"], row["email"], row["created_at"])
    )
    return row

def validate_api_key(api_key: str) -> dict | None:
    """Validate an API key and increment usage count."""
    row = fetchone(
        "SELECT * FROM api_keys WHERE api_key = ? AND is_active = 1",
        (api_key,)
    )
    if row:
        exec(
            "UPDATE api_keys SET usage_count = usage_count + 1 WHERE api_key = ?",
            (api_key,)
        )
    return row

def get_api_key_by_email(email: str) -> dict | None:
    return fetchone("SELECT * FROM api_keys WHERE email = ? AND is_active = 1", (email,))

def get_user(user_id: str) -> dict | None:
    return fetchone("SELECT user_id, email, created_at FROM api_keys WHERE user_id = ?", (user_id,))

# --- Repositories & collaborators ---

def insert_repository(repo: dict):
    exec(
        "INSERT INTO repositories(id, owner_id, name, description, is_private, created_at) VALUES (?, ?, ?, ?, ?, ?)",
        (repo["id"], repo["owner_id"], repo["name"], repo.get("description"),
         int(bool(repo.get("is_private"))), repo["created_at"])
    )

def get_repository(repo_id: str) -> dict | None:
    return fetchone("SELECT * FROM repositories WHERE id = ?", (repo_id,))

def upsert_collaborator(repo_id: str, user_id: str, permission: str):
    exec("""
    INSERT INTO collaborators(repo_id, user_id, permission, created_at) VALUES (?, ?, ?, ?)
    ON CONFLICT(repo_id, user_id) DO UPDATE SET permission=excluded.permission
    """, (repo_id, user_id, permission, iso_z(now_utc())))

def get_collaborator_permission(repo_id: str, user_id: str) -> str | None:
    row = fetchone("SELECT permission FROM collaborators WHERE repo_id = ? AND user_id = ?", (repo_id, user_id))
    return row["permission"] if row else None

# --- Branch protection rules ---

RULE_COLUMNS = (
    "pattern", "require_pull_request", "required_reviewers", "require_status_checks",
    "required_status_checks", "allow_force_push", "allow_deletion",
)

def _rule_params(rule: dict) -> dict:
    out = {}
    for col in RULE_COLUMNS:
        if col not in rule:
            continue
        val = rule[col]
        if col == "required_status_checks":
            val = json.dumps(list(val or []))
        elif isinstance(val, bool):
            val = int(val)
        out[col] = val
    return out

def insert_rule(rule: dict):
    """Raises sqlite3.IntegrityError when (repo_id, pattern) already exists."""
    params = _rule_params(rule)
    cols = ["id", "repo_id", *params.keys(), "created_at", "updated_at"]
    values = [rule["id"], rule["repo_id"], *params.values(), rule["created_at"], rule["updated_at"]]
    exec(
        f"INSERT INTO protection_rules({', '.join(cols)}) VALUES ({', '.join('?' for _ in cols)})",
        tuple(values)
    )

def get_rule(rule_id: str) -> dict | None:
    return fetchone("SELECT * FROM protection_rules WHERE id = ?", (rule_id,))

def list_rules(repo_id: str) -> list[dict]:
    return fetchall(
        "SELECT * FROM protection_rules WHERE repo_id = ? ORDER BY created_at ASC, rowid ASC",
        (repo_id,)
    )

def update_rule(rule_id: str, repo_id: str, fields: dict, updated_at: str) -> int:
    """Partial update scoped to the owning repository. Raises sqlite3.IntegrityError on pattern clash."""
    params = _rule_params(fields)
    assignments = [f"{col} = ?" for col in params]
    assignments.append("updated_at = ?")
    return exec(
        f"UPDATE protection_rules SET {', '.join(assignments)} WHERE id = ? AND repo_id = ?",
        (*params.values(), updated_at, rule_id, repo_id)
    )

def delete_rule(rule_id: str, repo_id: str) -> int:
    return exec("DELETE FROM protection_rules WHERE id = ? AND repo_id = ?", (rule_id, repo_id))

# --- Pull requests ---

def insert_pull_request(pr: dict) -> int:
    """Insert a pull request, allocating the next per-repository number atomically."""
    con = _conn()
    try:
        con.execute("""
        INSERT INTO pull_requests(
            id, repo_id, number, author_id, title, body,
            source_branch, target_branch, head_sha, base_sha, state, created_at
        )
        SELECT ?, ?, COALESCE(MAX(number), 0) + 1, ?, ?, ?, ?, ?, ?, ?, 'open', ?
        FROM pull_requests WHERE repo_id = ?
        """, (
            pr["id"], pr["repo_id"], pr["author_id"], pr["title"], pr.get("body"),
            pr["source_branch"], pr["target_branch"], pr.get("head_sha"), pr.get("base_sha"),
            pr["created_at"], pr["repo_id"],
        ))
        con.commit()
        row = con.execute("SELECT number FROM pull_requests WHERE id = ?", (pr["id"],)).fetchone()
        return row["number"]
    finally:
        con.close()

def get_pull_request(pr_id: str) -> dict | None:
    return fetchone("SELECT * FROM pull_requests WHERE id = ?", (pr_id,))

# --- Review requests & reviews ---

def upsert_review_request(pr_id: str, reviewer_id: str, requested_by: str, requested_at: str):
    # re-requesting a completed reviewer puts the pair back to pending
    exec("""
    INSERT INTO review_requests(pr_id, reviewer_id, requested_by, state, requested_at, completed_at)
    VALUES (?, ?, ?, 'pending', ?, NULL)
    ON CONFLICT(pr_id, reviewer_id) DO UPDATE SET
        requested_by=excluded.requested_by,
        state='pending',
        requested_at=excluded.requested_at,
        completed_at=NULL
    """, (pr_id, reviewer_id, requested_by, requested_at))

def get_review_request(pr_id: str, reviewer_id: str) -> dict | None:
    return fetchone("SELECT * FROM review_requests WHERE pr_id = ? AND reviewer_id = ?", (pr_id, reviewer_id))

def list_review_requests(pr_id: str) -> list[dict]:
    return fetchall(
        "SELECT * FROM review_requests WHERE pr_id = ? ORDER BY requested_at ASC, rowid ASC",
        (pr_id,)
    )

def delete_review_request(pr_id: str, reviewer_id: str) -> int:
    return exec("DELETE FROM review_requests WHERE pr_id = ? AND reviewer_id = ?", (pr_id, reviewer_id))

def insert_review(review: dict) -> int:
    """Record a review and complete the reviewer's pending request in one transaction.

    Returns the number of review requests flipped to completed (0 or 1).
    """
    con = _conn()
    try:
        with con:
            con.execute("""
            INSERT INTO reviews(id, pr_id, reviewer_id, state, body, commit_sha, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                review["id"], review["pr_id"], review["reviewer_id"], review["state"],
                review.get("body"), review.get("commit_sha"), review["created_at"],
            ))
            cur = con.execute("""
            UPDATE review_requests SET state='completed', completed_at=?
            WHERE pr_id = ? AND reviewer_id = ? AND state = 'pending'
            """, (review["created_at"], review["pr_id"], review["reviewer_id"]))
            return cur.rowcount
    finally:
        con.close()

def list_reviews(pr_id: str) -> list[dict]:
    return fetchall("SELECT * FROM reviews WHERE pr_id = ? ORDER BY created_at ASC, rowid ASC", (pr_id,))

def list_approving_reviewers(pr_id: str) -> list[str]:
    """Distinct reviewers whose latest approve/request-changes review is an approval.

    Plain comments do not override an earlier verdict.
    """
    rows = fetchall("""
    SELECT r.reviewer_id FROM reviews r
    WHERE r.pr_id = ? AND r.state = 'approved'
      AND r.rowid = (
        SELECT r2.rowid FROM reviews r2
        WHERE r2.pr_id = r.pr_id AND r2.reviewer_id = r.reviewer_id
          AND r2.state IN ('approved', 'changes_requested')
        ORDER BY r2.rowid DESC LIMIT 1
      )
    ORDER BY r.rowid ASC
    """, (pr_id,))
    return [row["reviewer_id"] for row in rows]

# --- Commit statuses ---

def upsert_commit_status(repo_id: str, sha: str, context: str, state: str, description: str | None, updated_at: str):
    exec("""
    INSERT INTO commit_statuses(repo_id, sha, context, state, description, updated_at)
    VALUES (?, ?, ?, ?, ?, ?)
    ON CONFLICT(repo_id, sha, context) DO UPDATE SET
        state=excluded.state,
        description=excluded.description,
        updated_at=excluded.updated_at
    """, (repo_id, sha, context, state, description, updated_at))

def list_commit_statuses(repo_id: str, sha: str) -> list[dict]:
    return fetchall(
        "SELECT * FROM commit_statuses WHERE repo_id = ? AND sha = ? ORDER BY context ASC",
        (repo_id, sha)
    )
