import sys
import getpass

from use_cases.auth_errors import AuthError
from use_cases.bootstrap import run_startup

result = run_startup()
reconciler = result.reconciler
print(f"Startup steps: {', '.join(result.planned_steps)}")
print(f"Restored session: {reconciler.session.state.value}")

if len(sys.argv) > 1:
    email = sys.argv[1]
    password = getpass.getpass(f"Password for {email}: ")
    try:
        user = reconciler.login(email, password)
        print(f"Logged in: {user.name} <{user.email}> role={user.role}")
    except AuthError as e:
        print(f"Login refused ({e.kind.value}): {e.message}")

session = reconciler.session
print(f"State: {session.state.value} admin={session.is_admin}")
reconciler.stop()
