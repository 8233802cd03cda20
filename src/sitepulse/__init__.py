"""
Privacy-oriented website analytics.

Usage:
    from sitepulse import setup_analytics

    analytics = setup_analytics(
        collect_url="https://analytics.example.com/track",
        d1_database_id="your-d1-id",
        cf_account_id="your-account-id",
        cf_api_token="your-api-token",
        resend_api_key="re_...",
    )

    app = analytics.app  # serve with any ASGI server

    # In site templates: {{ analytics.tracking_script() }}
"""

import json

from .aggregation import build_snapshot
from .app import create_app
from .config import AnalyticsConfig
from .mailer import Mailer, ResendMailer
from .milestones import MilestoneChecker
from .models import AnalyticsSnapshot, PageViewEvent, TrackedSite
from .rate_limit import RateLimiter
from .store import D1EventStore, EventStore, InMemoryEventStore

__version__ = "0.1.0"
__all__ = [
    "setup_analytics", "Analytics", "AnalyticsConfig",
    "AnalyticsSnapshot", "PageViewEvent", "TrackedSite",
    "EventStore", "InMemoryEventStore", "D1EventStore",
    "Mailer", "ResendMailer", "MilestoneChecker", "RateLimiter",
    "build_snapshot", "create_app",
]


class Analytics:
    """Main analytics interface: store, mailer and ASGI app for one deployment."""

    def __init__(
        self,
        config: AnalyticsConfig,
        store: EventStore | None = None,
        mailer: Mailer | None = None,
    ):
        self.config = config
        self.store = store or self._default_store(config)
        self.mailer = mailer or self._default_mailer(config)
        self.app = create_app(config, self.store, self.mailer)

    @staticmethod
    def _default_store(config: AnalyticsConfig) -> EventStore:
        if config.has_d1:
            return D1EventStore(
                d1_database_id=config.d1_database_id,
                cf_account_id=config.cf_account_id,
                cf_api_token=config.cf_api_token,
            )
        return InMemoryEventStore()

    @staticmethod
    def _default_mailer(config: AnalyticsConfig) -> Mailer | None:
        if config.has_mailer:
            return ResendMailer(config.resend_api_key, config.email_from)
        return None

    def tracking_script(self) -> str:
        """Generate the tracking script HTML for templates.

        Features:
        - visitorId persisted in localStorage, sessionId in sessionStorage,
          both as v4 UUIDs
        - Initial pageload tracking
        - SPA navigation support (pushState, replaceState, popstate)
        - Fire-and-forget: no retries, errors swallowed
        """
        url = json.dumps(self.config.collect_url)
        return f'''<script>
(function(){{
  var d=document,w=window,h=history,l=location;
  var url={url};

  function uuid(){{
    return "xxxxxxxx-xxxx-4xxx-yxxx-xxxxxxxxxxxx".replace(/[xy]/g,function(c){{
      var r=Math.random()*16|0,v=c=="x"?r:(r&0x3|0x8);return v.toString(16);
    }});
  }}

  function stored(storage,key){{
    try{{
      var id=storage.getItem(key);
      if(!id){{id=uuid();storage.setItem(key,id);}}
      return id;
    }}catch(e){{return null;}}
  }}

  function track(){{
    var data={{
      hostname:l.hostname,
      path:l.pathname,
      pageTitle:d.title,
      referrer:d.referrer,
      visitorId:stored(w.localStorage,"_vid"),
      sessionId:stored(w.sessionStorage,"_sid")
    }};
    try{{
      fetch(url,{{method:"POST",headers:{{"Content-Type":"application/json"}},body:JSON.stringify(data),keepalive:true}}).catch(function(){{}});
    }}catch(e){{}}
  }}

  track();

  var push=h.pushState;
  h.pushState=function(){{push.apply(h,arguments);track()}};
  var replace=h.replaceState;
  h.replaceState=function(){{replace.apply(h,arguments);track()}};
  w.addEventListener("popstate",track);
}})();
</script>'''


def setup_analytics(
    collect_url: str = "/track",
    d1_database_id: str = None,
    cf_account_id: str = None,
    cf_api_token: str = None,
    resend_api_key: str = None,
    **options,
) -> Analytics:
    """
    Set up analytics.

    Args:
        collect_url: Public URL of the /track endpoint, embedded in the snippet
        d1_database_id: Cloudflare D1 database ID (in-memory store if omitted)
        cf_account_id: Cloudflare account ID
        cf_api_token: Cloudflare API token with D1 read/write access
        resend_api_key: Resend API key for milestone emails (disabled if omitted)
        **options: Any other AnalyticsConfig field

    Returns:
        Analytics instance with app and tracking_script()
    """
    config = AnalyticsConfig(
        collect_url=collect_url,
        d1_database_id=d1_database_id,
        cf_account_id=cf_account_id,
        cf_api_token=cf_api_token,
        resend_api_key=resend_api_key,
        **options,
    )
    return Analytics(config)
