"""Security frameworks, policy types and their control requirements."""

from enum import Enum


class SecurityFramework(str, Enum):
    """Frameworks a policy set can be generated against."""

    PCI_DSS = "PCI-DSS"
    HIPAA = "HIPAA"
    NIST_800_171 = "NIST 800-171"
    CMMC_LEVEL_1 = "CMMC Level 1"


class PolicyType(str, Enum):
    """The three documents that make up a policy set."""

    ACCESS_CONTROL = "Access Control"
    ACCEPTABLE_USAGE = "Acceptable Usage"
    INCIDENT_RESPONSE = "Incident Response"

    @property
    def document_title(self) -> str:
        return f"{self.value} Policy"

    @property
    def field_name(self) -> str:
        """Attribute name of this document on ``PolicySet``."""
        return _FIELD_NAMES[self]

    @property
    def file_stem(self) -> str:
        return self.value.replace(" ", "_")


_FIELD_NAMES: dict[PolicyType, str] = {
    PolicyType.ACCESS_CONTROL: "access_control",
    PolicyType.ACCEPTABLE_USAGE: "acceptable_usage",
    PolicyType.INCIDENT_RESPONSE: "incident_response",
}


FRAMEWORK_REQUIREMENTS: dict[SecurityFramework, dict[PolicyType, list[str]]] = {
    SecurityFramework.PCI_DSS: {
        PolicyType.ACCESS_CONTROL: [
            "Requirement 7: Restrict access to cardholder data by business need-to-know",
            "Requirement 8: Identify and authenticate access to system components",
            "Strong access control measures and authentication procedures",
            "Role-based access control (RBAC) implementation",
            "Multi-factor authentication for administrative access",
        ],
        PolicyType.ACCEPTABLE_USAGE: [
            "Requirement 12: Maintain a policy that addresses information security",
            "User education and awareness requirements",
            "Prohibition of unauthorized cardholder data access",
            "Clear guidelines for system usage and data handling",
        ],
        PolicyType.INCIDENT_RESPONSE: [
            "Requirement 12.10: Implement an incident response plan",
            "Security incident detection and response procedures",
            "Forensic preservation requirements",
            "Communication protocols for security incidents",
        ],
    },
    SecurityFramework.HIPAA: {
        PolicyType.ACCESS_CONTROL: [
            "§164.308(a)(3) - Assigned security responsibility",
            "§164.308(a)(4) - Information access management",
            "§164.312(a)(1) - Access control standards",
            "§164.312(d) - Person or entity authentication",
            "Minimum necessary standard compliance",
        ],
        PolicyType.ACCEPTABLE_USAGE: [
            "§164.308(a)(5) - Security awareness and training",
            "§164.530(b) - Training requirements",
            "PHI handling and usage guidelines",
            "Workforce access restrictions and monitoring",
        ],
        PolicyType.INCIDENT_RESPONSE: [
            "§164.308(a)(6) - Security incident procedures",
            "§164.404 - Notification to individuals",
            "§164.406 - Notification to the media",
            "§164.408 - Notification to the Secretary",
            "Breach notification requirements within 60 days",
        ],
    },
    SecurityFramework.NIST_800_171: {
        PolicyType.ACCESS_CONTROL: [
            "3.1.1 - Limit system access to authorized users",
            "3.1.2 - Limit system access to authorized functions",
            "3.1.3 - Control CUI in accordance with approved authorizations",
            "3.5.1 - Identify system users and processes",
            "3.5.2 - Authenticate system users and processes",
        ],
        PolicyType.ACCEPTABLE_USAGE: [
            "3.2.1 - Ensure that managers, systems administrators receive security training",
            "3.2.2 - Ensure that personnel are trained to carry out assigned responsibilities",
            "CUI handling and marking requirements",
            "System usage monitoring and restrictions",
        ],
        PolicyType.INCIDENT_RESPONSE: [
            "3.6.1 - Establish operational incident-handling capability",
            "3.6.2 - Track, document, and report incidents",
            "3.6.3 - Test incident response capability",
            "CUI incident reporting to government authorities",
        ],
    },
    SecurityFramework.CMMC_LEVEL_1: {
        PolicyType.ACCESS_CONTROL: [
            "AC.L1-3.1.1 - Limit information system access",
            "AC.L1-3.1.2 - Limit information system access to authorized functions",
            "IA.L1-3.5.1 - Identify information system users",
            "IA.L1-3.5.2 - Authenticate information system users",
            "Basic access controls and user identification",
        ],
        PolicyType.ACCEPTABLE_USAGE: [
            "AT.L1-3.2.1 - Ensure security awareness training",
            "AT.L1-3.2.2 - Ensure role-based security training",
            "FCI protection and handling requirements",
            "System usage guidelines and restrictions",
        ],
        PolicyType.INCIDENT_RESPONSE: [
            "IR.L1-3.6.1 - Establish incident handling capability",
            "IR.L1-3.6.2 - Track and document security incidents",
            "Basic incident response procedures",
            "Security incident documentation requirements",
        ],
    },
}


def get_requirements(framework: SecurityFramework, policy_type: PolicyType) -> list[str]:
    """Return the key control requirements for one policy under a framework."""
    return FRAMEWORK_REQUIREMENTS[framework][policy_type]


def is_valid_framework(value: str) -> bool:
    """Check if a string is a supported framework label."""
    return value in {fw.value for fw in SecurityFramework}
