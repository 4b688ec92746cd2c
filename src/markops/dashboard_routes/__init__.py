"""Dashboard route modules, one APIRouter factory per resource family."""
