"""
Prometheus 指标模块

提供订单生命周期监控指标:
- 各状态转换次数
- 提交 / 成交 / 撤单计数
- 最近一次订单价格
"""

import logging

from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Info, generate_latest

from . import __version__
from .events import LifecycleEvent

logger = logging.getLogger(__name__)


# ============ 生命周期指标 ============
STATE_TRANSITIONS = Counter(
    'tradeflow_state_transitions_total',
    'Order lifecycle state transitions',
    ['pair', 'side', 'state']
)

ORDERS_SUBMITTED = Counter(
    'tradeflow_orders_submitted_total',
    'Orders submitted to the exchange',
    ['pair', 'side']
)

ORDERS_FILLED = Counter(
    'tradeflow_orders_filled_total',
    'Orders fully filled',
    ['pair', 'side']
)

ORDERS_CANCELLED = Counter(
    'tradeflow_orders_cancelled_total',
    'Orders cancelled after an incomplete fill',
    ['pair', 'side']
)

ORDERS_ABANDONED = Counter(
    'tradeflow_orders_abandoned_total',
    'Orders abandoned by pre-submit checks',
    ['pair', 'side', 'reason']
)

LAST_ORDER_PRICE = Gauge(
    'tradeflow_last_order_price',
    'Price of the last submitted limit order',
    ['pair', 'side']
)

# ============ 系统信息 ============
SYSTEM_INFO = Info(
    'tradeflow',
    'TradeFlow order execution information'
)

SYSTEM_INFO.info({
    'version': __version__,
})


def record_event(event: LifecycleEvent) -> None:
    """生命周期事件回调，注册到 EventBus"""
    STATE_TRANSITIONS.labels(pair=event.pair, side=event.side, state=event.state).inc()

    if event.state == "submitted":
        ORDERS_SUBMITTED.labels(pair=event.pair, side=event.side).inc()
        if event.price is not None:
            LAST_ORDER_PRICE.labels(pair=event.pair, side=event.side).set(float(event.price))
    elif event.state == "filled":
        ORDERS_FILLED.labels(pair=event.pair, side=event.side).inc()
    elif event.state == "cancelling":
        ORDERS_CANCELLED.labels(pair=event.pair, side=event.side).inc()
    elif event.state == "abandoned":
        ORDERS_ABANDONED.labels(
            pair=event.pair, side=event.side, reason=event.reason or "unknown"
        ).inc()


# ============ HTTP 端点 ============

async def metrics_handler(request: web.Request) -> web.Response:
    """Prometheus metrics endpoint"""
    return web.Response(
        body=generate_latest(),
        headers={"Content-Type": CONTENT_TYPE_LATEST},
    )


async def health_handler(request: web.Request) -> web.Response:
    """Health check endpoint"""
    return web.Response(text="OK", status=200)


def create_metrics_app() -> web.Application:
    """创建 metrics HTTP 应用"""
    app = web.Application()
    app.router.add_get('/metrics', metrics_handler)
    app.router.add_get('/health', health_handler)
    app.router.add_get('/healthz', health_handler)
    return app


async def start_metrics_server(host: str = "0.0.0.0", port: int = 8000) -> web.AppRunner:
    """启动 metrics 服务器"""
    app = create_metrics_app()
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info(f"Metrics server running at http://{host}:{port}/metrics")
    return runner
