"""
TradeFlow 配置管理

支持 YAML 配置文件和环境变量覆盖。
"""

import os
from dataclasses import dataclass, field, fields as dataclass_fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Dict, Optional

import yaml

from .exceptions import ValidationError


def parse_percent(value) -> Decimal:
    """解析交易百分比，非数字或非有限值抛出 ValidationError"""
    try:
        percent = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"trade_percent is not a number: {value!r}", field="trade_percent") from None
    if not percent.is_finite():
        raise ValidationError(f"trade_percent must be finite: {value!r}", field="trade_percent")
    return percent


@dataclass
class ExchangeConfig:
    """交易所连接配置"""
    name: str
    api_key: str = ""
    api_secret: str = ""
    testnet: bool = False
    rest_url: str = ""

    # 请求配置
    request_timeout: float = 10.0
    recv_window: int = 5000

    def __post_init__(self):
        """根据交易所名称设置默认 URL"""
        if self.name == "binance" and not self.rest_url:
            self.rest_url = "https://api.binance.com" if not self.testnet else "https://testnet.binance.vision"


@dataclass
class PaperConfig:
    """模拟交易所配置"""
    balances: Dict[str, str] = field(default_factory=lambda: {"USDT": "1000", "BTC": "0"})
    fee: str = "0.001"
    bid: str = "0"
    ask: str = "0"
    # 每次检查时成交的比例 (1 = 立即全部成交)
    fill_ratio: str = "1"


@dataclass
class TraderConfig:
    """交易对与下单策略配置"""
    currency: str = "USDT"
    asset: str = "BTC"

    # 亏损规避: 不以高于上次卖出价买入 / 不以低于上次买入价卖出
    loss_avoidant: bool = False

    # 每次信号使用可用余额的百分比 (0-100)，None 表示全部
    trade_percent: Optional[Decimal] = None

    # 订单生命周期计时 (秒)
    fill_check_delay: float = 30.0
    cancel_cooldown: float = 1.0

    # 余额被动增长的交易所的定期复查间隔 (秒)
    portfolio_recheck_interval: float = 300.0
    # None 表示按交易所元数据 (passive_balance_growth) 决定
    recheck_portfolio: Optional[bool] = None

    def __post_init__(self):
        if self.trade_percent is not None:
            self.trade_percent = parse_percent(self.trade_percent)

    @property
    def pair(self) -> str:
        return f"{self.asset}/{self.currency}"

    def validate(self) -> None:
        """验证配置参数"""
        if not self.currency or not self.asset:
            raise ValidationError("currency and asset are required", field="pair")

        if self.currency == self.asset:
            raise ValidationError("currency and asset must differ", field="pair")

        if self.trade_percent is not None and not (0 <= self.trade_percent <= 100):
            raise ValidationError("trade_percent must be between 0 and 100", field="trade_percent")

        if self.fill_check_delay <= 0:
            raise ValidationError("fill_check_delay must be positive", field="fill_check_delay")

        if self.cancel_cooldown < 0:
            raise ValidationError("cancel_cooldown must not be negative", field="cancel_cooldown")


@dataclass
class MetricsConfig:
    """Prometheus 指标服务配置"""
    enabled: bool = False
    host: str = "0.0.0.0"
    port: int = 8000


@dataclass
class Config:
    """TradeFlow 主配置"""
    # 使用的交易所 (registry slug)
    exchange: str = "paper"

    # 交易所连接配置
    exchanges: Dict[str, ExchangeConfig] = field(default_factory=dict)

    trader: TraderConfig = field(default_factory=TraderConfig)
    paper: PaperConfig = field(default_factory=PaperConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)

    # 日志配置
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @classmethod
    def from_yaml(cls, path: str) -> "Config":
        """从 YAML 文件加载配置"""
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)

        return cls._from_dict(data or {})

    @classmethod
    def from_env(cls) -> "Config":
        """从环境变量加载配置"""
        config = cls()

        if exchange := os.getenv("TRADEFLOW_EXCHANGE"):
            config.exchange = exchange

        if currency := os.getenv("TRADEFLOW_CURRENCY"):
            config.trader.currency = currency.upper()

        if asset := os.getenv("TRADEFLOW_ASSET"):
            config.trader.asset = asset.upper()

        if loss_avoidant := os.getenv("TRADEFLOW_LOSS_AVOIDANT"):
            config.trader.loss_avoidant = loss_avoidant.lower() == "true"

        if trade_percent := os.getenv("TRADEFLOW_TRADE_PERCENT"):
            config.trader.trade_percent = parse_percent(trade_percent)

        # Binance
        if os.getenv("BINANCE_API_KEY"):
            config.exchanges["binance"] = ExchangeConfig(
                name="binance",
                api_key=os.getenv("BINANCE_API_KEY", ""),
                api_secret=os.getenv("BINANCE_API_SECRET", ""),
                testnet=os.getenv("BINANCE_TESTNET", "").lower() == "true",
            )

        # Log level
        if log_level := os.getenv("LOG_LEVEL"):
            config.log_level = log_level

        return config

    @classmethod
    def _from_dict(cls, data: Dict) -> "Config":
        """从字典创建配置"""
        config = cls()

        def _filter_kwargs(dc_cls, raw: dict) -> dict:
            allowed = {f.name for f in dataclass_fields(dc_cls) if f.init}
            return {k: v for k, v in raw.items() if k in allowed}

        config.exchange = data.get("exchange", config.exchange)

        # 解析交易所配置
        for name, exc_data in data.get("exchanges", {}).items():
            if not isinstance(exc_data, dict):
                continue
            if exc_data.get("enabled", True) is False:
                continue
            kwargs = _filter_kwargs(ExchangeConfig, exc_data)
            kwargs.pop("name", None)
            config.exchanges[name] = ExchangeConfig(name=name, **kwargs)

        # 解析交易配置
        if trader_data := data.get("trader"):
            config.trader = TraderConfig(**_filter_kwargs(TraderConfig, trader_data))

        if paper_data := data.get("paper"):
            config.paper = PaperConfig(**_filter_kwargs(PaperConfig, paper_data))

        if metrics_data := data.get("metrics"):
            config.metrics = MetricsConfig(**_filter_kwargs(MetricsConfig, metrics_data))

        # 日志配置
        config.log_level = data.get("log_level", "INFO")

        return config

    def get_exchange(self, name: Optional[str] = None) -> Optional[ExchangeConfig]:
        """获取交易所配置"""
        return self.exchanges.get(name or self.exchange)


def load_config(config_path: Optional[str] = None) -> Config:
    """
    加载配置

    优先级: 环境变量 > 配置文件 > 默认值
    """
    config = Config()
    resolved_path = resolve_config_path(config_path)
    if resolved_path is not None:
        config = Config.from_yaml(str(resolved_path))

    # 环境变量覆盖
    env_config = Config.from_env()

    for name, exc in env_config.exchanges.items():
        config.exchanges[name] = exc

    if os.getenv("TRADEFLOW_EXCHANGE"):
        config.exchange = env_config.exchange
    if os.getenv("TRADEFLOW_CURRENCY"):
        config.trader.currency = env_config.trader.currency
    if os.getenv("TRADEFLOW_ASSET"):
        config.trader.asset = env_config.trader.asset
    if os.getenv("TRADEFLOW_LOSS_AVOIDANT"):
        config.trader.loss_avoidant = env_config.trader.loss_avoidant
    if os.getenv("TRADEFLOW_TRADE_PERCENT"):
        config.trader.trade_percent = env_config.trader.trade_percent
    if os.getenv("LOG_LEVEL"):
        config.log_level = env_config.log_level

    config.trader.validate()
    return config


def resolve_config_path(config_path: Optional[str] = None) -> Optional[Path]:
    """
    Resolve config file path robustly (supports running from outside project root).

    Priority:
      1) env TRADEFLOW_CONFIG
      2) given config_path (absolute/relative)
      3) cwd config/default.yaml
      4) project_root/config/default.yaml (relative to this module)
    """
    candidates: list[Path] = []

    env_path = os.getenv("TRADEFLOW_CONFIG")
    if env_path:
        candidates.append(Path(env_path))

    if config_path:
        p = Path(config_path)
        candidates.append(p)
        if not p.is_absolute():
            project_root = Path(__file__).resolve().parents[3]
            candidates.append(project_root / p)

    candidates.append(Path("config/default.yaml"))
    candidates.append(Path(__file__).resolve().parents[3] / "config" / "default.yaml")

    for p in candidates:
        if p.exists():
            return p

    return None
