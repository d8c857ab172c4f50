"""Provider and location normalization tables.

All three tables are ordered lists of plain dicts evaluated top to bottom,
first match wins. Keyword matching is a case-insensitive substring test.

    provider rule: {"keywords": [...], "provider": "<canonical name>"}
    location rule: {"provider": "<canonical name>", "keywords": [...],
                    "city": "<display city>", "region": "<region code>"}
    asn rule:      {"asns": [<int>, ...], "provider": "<canonical name>"}

A rules file holds the same three lists under "providers", "locations"
and "asns"; its entries are placed ahead of the built-in ones.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

from ..constants import UNKNOWN_LOCATION, UNKNOWN_PROVIDER
from ..exceptions import RulesFileError

DEFAULT_PROVIDER_RULES: List[Dict[str, Any]] = [
    {"keywords": ["amazon", "aws", "ec2"], "provider": "AWS"},
    {"keywords": ["alibaba", "aliyun", "alicloud"], "provider": "Alibaba Cloud"},
    {"keywords": ["google", "gcp"], "provider": "Google Cloud"},
    {"keywords": ["azure", "microsoft"], "provider": "Azure"},
    {"keywords": ["digitalocean", "digital ocean"], "provider": "DigitalOcean"},
    {"keywords": ["ovh"], "provider": "OVH"},
    {"keywords": ["hetzner"], "provider": "Hetzner"},
    {"keywords": ["vultr", "choopa"], "provider": "Vultr"},
    {"keywords": ["linode", "akamai"], "provider": "Linode"},
    {"keywords": ["tencent", "qcloud"], "provider": "Tencent Cloud"},
    {"keywords": ["huawei"], "provider": "Huawei Cloud"},
]


def _regions(provider: str, entries: List[Tuple[List[str], str, str]]) -> List[Dict[str, Any]]:
    return [
        {"provider": provider, "keywords": keywords, "city": city, "region": region}
        for keywords, city, region in entries
    ]


DEFAULT_LOCATION_RULES: List[Dict[str, Any]] = (
    _regions("AWS", [
        (["Osaka"], "Osaka", "ap-northeast-3"),  # before Tokyo, whose keywords include "Japan"
        (["Tokyo", "Japan"], "Tokyo", "ap-northeast-1"),
        (["Seoul", "Korea"], "Seoul", "ap-northeast-2"),
        (["Singapore"], "Singapore", "ap-southeast-1"),
        (["Sydney", "Australia"], "Sydney", "ap-southeast-2"),
        (["Mumbai", "India"], "Mumbai", "ap-south-1"),
        (["Hong Kong"], "Hong Kong", "ap-east-1"),
        (["Jakarta", "Indonesia"], "Jakarta", "ap-southeast-3"),
        (["Virginia"], "N. Virginia", "us-east-1"),
        (["Ohio"], "Ohio", "us-east-2"),
        (["N. California"], "N. California", "us-west-1"),
        (["Oregon"], "Oregon", "us-west-2"),
        (["São Paulo", "Sao Paulo", "Brazil"], "São Paulo", "sa-east-1"),
        (["Ireland"], "Ireland", "eu-west-1"),
        (["London", "England"], "London", "eu-west-2"),
        (["Paris", "France"], "Paris", "eu-west-3"),
        (["Frankfurt", "Germany"], "Frankfurt", "eu-central-1"),
        (["Stockholm", "Sweden"], "Stockholm", "eu-north-1"),
        (["Milan", "Italy"], "Milan", "eu-south-1"),
        (["Bahrain"], "Bahrain", "me-south-1"),
        (["Cape Town", "Africa"], "Cape Town", "af-south-1"),
    ])
    + _regions("Google Cloud", [
        (["Osaka"], "Osaka", "asia-northeast2"),
        (["Tokyo", "Japan"], "Tokyo", "asia-northeast1"),
        (["Seoul", "Korea"], "Seoul", "asia-northeast3"),
        (["Hong Kong"], "Hong Kong", "asia-east2"),
        (["Taiwan"], "Changhua", "asia-east1"),
        (["Singapore"], "Singapore", "asia-southeast1"),
        (["Jakarta", "Indonesia"], "Jakarta", "asia-southeast2"),
        (["Sydney", "Australia"], "Sydney", "australia-southeast1"),
        (["Melbourne"], "Melbourne", "australia-southeast2"),
        (["Mumbai", "India"], "Mumbai", "asia-south1"),
        (["Delhi"], "Delhi", "asia-south2"),
        (["Iowa"], "Iowa", "us-central1"),
        (["South Carolina"], "South Carolina", "us-east1"),
        (["Virginia"], "N. Virginia", "us-east4"),
        (["Oregon"], "Oregon", "us-west1"),
        (["Los Angeles"], "Los Angeles", "us-west2"),
        (["Salt Lake City"], "Salt Lake City", "us-west3"),
        (["Las Vegas"], "Las Vegas", "us-west4"),
        (["São Paulo", "Sao Paulo"], "São Paulo", "southamerica-east1"),
        (["Santiago"], "Santiago", "southamerica-west1"),
        (["Belgium"], "Belgium", "europe-west1"),
        (["London"], "London", "europe-west2"),
        (["Frankfurt"], "Frankfurt", "europe-west3"),
        (["Netherlands"], "Netherlands", "europe-west4"),
        (["Zürich", "Zurich"], "Zürich", "europe-west6"),
        (["Milan"], "Milan", "europe-west8"),
        (["Paris"], "Paris", "europe-west9"),
        (["Warsaw"], "Warsaw", "europe-central2"),
        (["Finland"], "Finland", "europe-north1"),
    ])
    + _regions("Alibaba Cloud", [
        (["Hangzhou", "杭州"], "Hangzhou", "cn-hangzhou"),
        (["Shanghai", "上海"], "Shanghai", "cn-shanghai"),
        (["Beijing", "北京"], "Beijing", "cn-beijing"),
        (["Shenzhen", "深圳"], "Shenzhen", "cn-shenzhen"),
        (["Heyuan", "河源"], "Heyuan", "cn-heyuan"),
        (["Guangzhou", "广州"], "Guangzhou", "cn-guangzhou"),
        (["Chengdu", "成都"], "Chengdu", "cn-chengdu"),
        (["Qingdao", "青岛"], "Qingdao", "cn-qingdao"),
        (["Hohhot", "呼和浩特"], "Hohhot", "cn-huhehaote"),
        (["Ulanqab", "乌兰察布"], "Ulanqab", "cn-wulanchabu"),
        (["Zhangjiakou", "张家口"], "Zhangjiakou", "cn-zhangjiakou"),
        (["Hong Kong", "香港"], "Hong Kong", "cn-hongkong"),
        (["Singapore", "新加坡"], "Singapore", "ap-southeast-1"),
        (["Sydney", "悉尼"], "Sydney", "ap-southeast-2"),
        (["Kuala Lumpur", "吉隆坡"], "Kuala Lumpur", "ap-southeast-3"),
        (["Jakarta", "雅加达"], "Jakarta", "ap-southeast-5"),
        (["Mumbai", "孟买"], "Mumbai", "ap-south-1"),
        (["Tokyo", "东京"], "Tokyo", "ap-northeast-1"),
        (["Seoul", "首尔"], "Seoul", "ap-northeast-2"),
    ])
    + _regions("Tencent Cloud", [
        (["Beijing", "北京"], "Beijing", "ap-beijing"),
        (["Shanghai", "上海"], "Shanghai", "ap-shanghai"),
        (["Guangzhou", "广州"], "Guangzhou", "ap-guangzhou"),
        (["Chengdu", "成都"], "Chengdu", "ap-chengdu"),
        (["Chongqing", "重庆"], "Chongqing", "ap-chongqing"),
        (["Nanjing", "南京"], "Nanjing", "ap-nanjing"),
        (["Hong Kong", "香港"], "Hong Kong", "ap-hongkong"),
        (["Singapore", "新加坡"], "Singapore", "ap-singapore"),
        (["Bangkok", "曼谷"], "Bangkok", "ap-bangkok"),
        (["Mumbai", "孟买"], "Mumbai", "ap-mumbai"),
        (["Seoul", "首尔"], "Seoul", "ap-seoul"),
        (["Tokyo", "东京"], "Tokyo", "ap-tokyo"),
        (["Silicon Valley"], "Silicon Valley", "na-siliconvalley"),
        (["Virginia"], "Ashburn", "na-ashburn"),
        (["Toronto"], "Toronto", "na-toronto"),
        (["Frankfurt", "法兰克福"], "Frankfurt", "eu-frankfurt"),
    ])
    + _regions("Azure", [
        (["Hong Kong", "香港"], "Hong Kong", "eastasia"),
        (["Singapore", "新加坡"], "Singapore", "southeastasia"),
        (["Tokyo", "东京"], "Tokyo", "japaneast"),
        (["Osaka", "大阪"], "Osaka", "japanwest"),
        (["Seoul", "首尔"], "Seoul", "koreacentral"),
        (["Busan", "釜山"], "Busan", "koreasouth"),
    ])
    + _regions("DigitalOcean", [
        (["New York"], "New York", "nyc1"),
        (["Amsterdam"], "Amsterdam", "ams1"),
        (["San Francisco"], "San Francisco", "sfo1"),
        (["Singapore"], "Singapore", "sgp1"),
        (["London"], "London", "lon1"),
        (["Frankfurt"], "Frankfurt", "fra1"),
        (["Toronto"], "Toronto", "tor1"),
        (["Bangalore"], "Bangalore", "blr1"),
    ])
    + _regions("Vultr", [
        (["Tokyo"], "Tokyo", "nrt"),
        (["Singapore"], "Singapore", "sgp"),
        (["Seoul"], "Seoul", "icn"),
        (["Delhi"], "Delhi", "del"),
        (["Sydney"], "Sydney", "syd"),
        (["Frankfurt"], "Frankfurt", "fra"),
        (["Paris"], "Paris", "cdg"),
        (["Amsterdam"], "Amsterdam", "ams"),
        (["London"], "London", "lhr"),
        (["New Jersey"], "New Jersey", "ewr"),
        (["Chicago"], "Chicago", "ord"),
        (["Atlanta"], "Atlanta", "atl"),
        (["Miami"], "Miami", "mia"),
        (["Dallas"], "Dallas", "dfw"),
        (["Silicon Valley"], "Silicon Valley", "sjo"),
        (["Los Angeles"], "Los Angeles", "lax"),
        (["Seattle"], "Seattle", "sea"),
        (["Mexico City"], "Mexico City", "mex"),
        (["São Paulo", "Sao Paulo"], "São Paulo", "sao"),
        (["Melbourne"], "Melbourne", "mel"),
        (["Warsaw"], "Warsaw", "waw"),
        (["Stockholm"], "Stockholm", "sto"),
        (["Johannesburg"], "Johannesburg", "jnb"),
    ])
    + _regions("Linode", [
        (["Tokyo"], "Tokyo", "ap-northeast"),
        (["Singapore"], "Singapore", "ap-south"),
        (["Sydney"], "Sydney", "ap-southeast"),
        (["Mumbai"], "Mumbai", "ap-west"),
        (["Toronto"], "Toronto", "ca-central"),
        (["Frankfurt"], "Frankfurt", "eu-central"),
        (["London"], "London", "eu-west"),
        (["Newark"], "Newark", "us-east"),
        (["Atlanta"], "Atlanta", "us-southeast"),
        (["Dallas"], "Dallas", "us-central"),
        (["Los Angeles"], "Los Angeles", "us-west"),
    ])
)

# Where two entries share a number the earlier one wins
DEFAULT_ASN_RULES: List[Dict[str, Any]] = [
    {"asns": [16509, 14618, 38895, 39111, 7224, 35994, 10124], "provider": "AWS"},
    {"asns": [15169, 396982, 19527, 43515, 36040, 36384, 36385, 41264, 36492], "provider": "Google Cloud"},
    {"asns": [8075, 8068, 8069, 8070, 8071, 8072, 8073, 8074, 8076, 8077], "provider": "Azure"},
    {"asns": [45102, 45103, 37963, 45104], "provider": "Alibaba Cloud"},
    {"asns": [45090, 132203, 132591], "provider": "Tencent Cloud"},
    {"asns": [55990, 136907, 136908, 136909, 136238, 136237, 136236], "provider": "Huawei Cloud"},
    {"asns": [63835, 63512], "provider": "Baidu Cloud"},
    {"asns": [13335, 209242, 395747, 136620, 394536, 394556], "provider": "Cloudflare"},
    {"asns": [14061, 200130, 202109, 46652], "provider": "DigitalOcean"},
    {"asns": [20473, 64515, 397558, 401886], "provider": "Vultr"},
    {"asns": [63949, 396998, 398962], "provider": "Linode"},
    {"asns": [16276, 394621, 394622, 35540, 37989], "provider": "OVH"},
    {"asns": [396356, 396377], "provider": "Latitude.sh"},
    {"asns": [24940, 213230, 213231], "provider": "Hetzner"},
    {"asns": [60781, 201200, 201201], "provider": "LeaseWeb"},
    {"asns": [12876, 203476, 209863], "provider": "Scaleway"},
    {"asns": [54825, 54826], "provider": "Packet Host"},
    {"asns": [32244, 32245], "provider": "Liquid Web"},
    {"asns": [36352, 36351], "provider": "ColoCrossing"},
    {"asns": [174, 7018], "provider": "AT&T"},
    {"asns": [3356, 3549], "provider": "Level3"},
    {"asns": [6939], "provider": "HE"},
    {"asns": [1299], "provider": "Telia"},
    {"asns": [2914], "provider": "NTT"},
]


def _validate_rule(rule: Any, required: Dict[str, type], kind: str) -> Dict[str, Any]:
    if not isinstance(rule, dict):
        raise RulesFileError(f"{kind} rule must be an object, got {rule!r}")
    for key, expected in required.items():
        if not isinstance(rule.get(key), expected):
            raise RulesFileError(f"{kind} rule {rule!r} needs '{key}' of type {expected.__name__}")
    return rule


class ClassificationRules:
    """Ordered normalization tables with first-match-wins lookup."""

    def __init__(self, provider_rules: Optional[List[Dict[str, Any]]] = None,
                 location_rules: Optional[List[Dict[str, Any]]] = None,
                 asn_rules: Optional[List[Dict[str, Any]]] = None):
        self.provider_rules = list(DEFAULT_PROVIDER_RULES if provider_rules is None else provider_rules)
        self.location_rules = list(DEFAULT_LOCATION_RULES if location_rules is None else location_rules)
        self.asn_rules = list(DEFAULT_ASN_RULES if asn_rules is None else asn_rules)

    @classmethod
    def load(cls, rules_file: str = "") -> "ClassificationRules":
        """Build the default tables, extended from a rules file if given.

        Raises:
            RulesFileError: If the file cannot be read or has the wrong shape
        """
        rules = cls()
        if rules_file:
            try:
                with open(rules_file, 'r') as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                raise RulesFileError(f"Cannot load classification rules from {rules_file}: {e}")
            rules.extend(data)
            print(f"[INFO] Loaded classification rules from {rules_file}")
        return rules

    def extend(self, data: Dict[str, Any]) -> None:
        """Prepend rules so they take precedence over the current tables."""
        if not isinstance(data, dict):
            raise RulesFileError("Rules file must contain a JSON object")

        providers = [_validate_rule(r, {"keywords": list, "provider": str}, "provider")
                     for r in data.get("providers", [])]
        locations = [_validate_rule(r, {"provider": str, "keywords": list, "city": str, "region": str},
                                    "location")
                     for r in data.get("locations", [])]
        asns = [_validate_rule(r, {"asns": list, "provider": str}, "asn")
                for r in data.get("asns", [])]

        self.provider_rules = providers + self.provider_rules
        self.location_rules = locations + self.location_rules
        self.asn_rules = asns + self.asn_rules

    def canonical_provider(self, raw: str) -> str:
        """Map a raw organization string to a canonical provider name.

        Unmatched names pass through unchanged (trimmed).
        """
        raw = (raw or "").strip()
        if not raw:
            return UNKNOWN_PROVIDER
        lowered = raw.lower()
        for rule in self.provider_rules:
            if any(keyword.lower() in lowered for keyword in rule["keywords"]):
                return rule["provider"]
        return raw

    def provider_for_asn(self, asn: Optional[int]) -> Optional[str]:
        """Look up a provider by autonomous system number."""
        if asn is None:
            return None
        for rule in self.asn_rules:
            if asn in rule["asns"]:
                return rule["provider"]
        return None

    def refine_location(self, provider: str, raw_location: str) -> Tuple[str, str]:
        """Map (canonical provider, raw location) to (display label, region code).

        Unmatched locations pass through as the display label with an
        empty region code.
        """
        raw_location = (raw_location or "").strip()
        if not raw_location or raw_location == UNKNOWN_LOCATION:
            return UNKNOWN_LOCATION, ""
        lowered = raw_location.lower()
        for rule in self.location_rules:
            if rule["provider"] != provider:
                continue
            if any(keyword.lower() in lowered for keyword in rule["keywords"]):
                return f"{rule['city']} ({rule['region']})", rule["region"]
        return raw_location, ""

    def normalize(self, raw_provider: str, raw_location: str,
                  asn: Optional[int] = None) -> Tuple[str, str, str]:
        """Normalize raw lookup output.

        Args:
            raw_provider: Organization string from a lookup tier (may be empty)
            raw_location: "City, Region, Country" style string (may be empty)
            asn: Autonomous system number, used when no organization is known

        Returns:
            Tuple of (provider, location, region_code)
        """
        if not (raw_provider or "").strip():
            raw_provider = self.provider_for_asn(asn) or (f"ASN-{asn}" if asn is not None else "")
        provider = self.canonical_provider(raw_provider)
        location, region_code = self.refine_location(provider, raw_location)
        return provider, location, region_code
