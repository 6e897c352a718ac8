"""Top-level package for fintrack, a personal finance tracker.

The aggregation engine turns raw records into the views the dashboard
renders.  The primary modules are:

* ``models`` - record types parsed from storage rows
* ``periods`` - month / year / date-range filters
* ``totals``, ``categories``, ``budgets``, ``goals`` - the derived views
* ``recurring`` - recurring payment schedules and the auto-add check
* ``engine`` - builds a full dashboard snapshot for the signed-in user
* ``db`` - the SQLite record store
* ``visualization`` - Plotly figures for each view
* ``dashboard`` - the Streamlit app tying everything together

To run the dashboard from the command line you can execute:

```bash
streamlit run fintrack/dashboard.py
```

The dashboard module is not imported here so that the engine can be used
without starting Streamlit.
"""

from . import budgets  # noqa: F401
from . import categories  # noqa: F401
from . import goals  # noqa: F401
from . import periods  # noqa: F401
from . import totals  # noqa: F401
from .engine import DashboardSnapshot, build_snapshot  # noqa: F401

__all__ = ["budgets", "categories", "goals", "periods", "totals", "DashboardSnapshot", "build_snapshot"]
